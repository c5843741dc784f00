import pytest

from scoreboard.services.secrets.env_secrets import EnvSecrets


def test_get_returns_override():
    secrets = EnvSecrets(overrides={"STATE_REDIS_URL": "redis://state:6379/1"})
    assert secrets.get("STATE_REDIS_URL") == "redis://state:6379/1"


def test_get_returns_none_for_missing():
    secrets = EnvSecrets(overrides={})
    assert secrets.get("SCOREBOARD_UNSET_KEY_12345") is None


def test_get_or_default_falls_back():
    secrets = EnvSecrets(overrides={})
    assert secrets.get_or_default("SCOREBOARD_UNSET_KEY_12345", "fallback") == "fallback"


def test_get_or_default_keeps_empty_string():
    secrets = EnvSecrets(overrides={"MQ_KAFKA_GROUP_ID": ""})
    assert secrets.get_or_default("MQ_KAFKA_GROUP_ID", "score-board-function") == ""


def test_require_raises_for_missing():
    secrets = EnvSecrets(overrides={})
    with pytest.raises(KeyError, match="Required secret 'SCOREBOARD_UNSET_KEY_12345' is not set"):
        secrets.require("SCOREBOARD_UNSET_KEY_12345")


def test_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MQ_KAFKA_BOOTSTRAP_SERVERS", "from_env:9092")
    secrets = EnvSecrets(overrides={"MQ_KAFKA_BOOTSTRAP_SERVERS": "from_override:9092"})
    assert secrets.require("MQ_KAFKA_BOOTSTRAP_SERVERS") == "from_override:9092"
