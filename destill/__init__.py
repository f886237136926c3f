"""Log triage for CI/CD pipelines: Buildkite and GitHub Actions clients, log chunking, error scoring, an in-memory broker and ranked triage cards."""

__version__ = "0.1.0"