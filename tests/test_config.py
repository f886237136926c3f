import pytest

from destill.config import ConfigError, load_from_env


def test_missing_token_raises():
    with pytest.raises(ConfigError, match="BUILDKITE_API_TOKEN environment variable is required"):
        load_from_env({})


def test_local_mode_config():
    config = load_from_env({"BUILDKITE_API_TOKEN": "token"})
    assert config.buildkite_api_token == "token"
    assert config.redpanda_brokers == []
    assert config.postgres_dsn == ""


def test_brokers_are_split_and_trimmed():
    config = load_from_env(
        {
            "BUILDKITE_API_TOKEN": "token",
            "REDPANDA_BROKERS": "localhost:19092 , localhost:19093",
            "POSTGRES_DSN": "postgres://localhost/destill",
        }
    )
    assert config.redpanda_brokers == ["localhost:19092", "localhost:19093"]
    assert config.postgres_dsn == "postgres://localhost/destill"


def test_brokers_without_dsn_raise():
    with pytest.raises(ConfigError, match="POSTGRES_DSN is required"):
        load_from_env({"BUILDKITE_API_TOKEN": "token", "REDPANDA_BROKERS": "localhost:19092"})


def test_reads_process_environment_by_default(monkeypatch):
    monkeypatch.setenv("BUILDKITE_API_TOKEN", "token")
    monkeypatch.delenv("REDPANDA_BROKERS", raising=False)
    monkeypatch.delenv("POSTGRES_DSN", raising=False)
    assert load_from_env().buildkite_api_token == "token"


def test_process_environment_missing_token(monkeypatch):
    monkeypatch.delenv("BUILDKITE_API_TOKEN", raising=False)
    with pytest.raises(ConfigError):
        load_from_env()