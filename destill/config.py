"""Application configuration read from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field


class ConfigError(ValueError):
    """Raised when the environment does not hold a usable configuration."""


@dataclass
class Config:
    """Settings for the CLI and agents.

    An empty broker list means the in-memory broker is used; a Postgres DSN
    is required whenever brokers are given.
    """

    buildkite_api_token: str
    redpanda_brokers: list[str] = field(default_factory=list)
    postgres_dsn: str = ""


def load_from_env(environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from environment variables (os.environ by default)."""
    env = os.environ if environ is None else environ

    token = env.get("BUILDKITE_API_TOKEN", "")
    if not token:
        raise ConfigError("BUILDKITE_API_TOKEN environment variable is required")

    brokers_env = env.get("REDPANDA_BROKERS", "")
    brokers = [part.strip() for part in brokers_env.split(",")] if brokers_env else []

    config = Config(
        buildkite_api_token=token,
        redpanda_brokers=brokers,
        postgres_dsn=env.get("POSTGRES_DSN", ""),
    )

    if config.redpanda_brokers and not config.postgres_dsn:
        raise ConfigError(
            "POSTGRES_DSN is required when REDPANDA_BROKERS is set (distributed mode)"
        )
    return config