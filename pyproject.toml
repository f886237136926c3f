[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "destill"
version = "0.1.0"
description = "Log triage for CI/CD pipelines: fetch build logs, chunk them, score likely root-cause errors and rank the findings."
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = ["ci", "cd", "logs", "triage", "buildkite", "github-actions", "build-failures"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: Internet :: Log Analysis",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["destill"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
