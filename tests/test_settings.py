from __future__ import annotations

import json
import os

import pytest

import settings
from core.errors import ConfigError
from core.rules_engine import ReplyRule

_ENV_KEYS = ["API_ID", "API_HASH", "PHONE", "SESSION_NAME", "META_ACCESS_TOKEN", "META_VERIFY_TOKEN", "META_APP_SECRET", "CONFIG_PATH"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the tests.
    monkeypatch.setattr(settings, "load_dotenv", lambda *args, **kwargs: False)


def _write(tmp_path, data) -> str:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return str(path)


def _base(**overrides) -> dict:
    data = {
        "credentials": {"api_id": 12345, "api_hash": "hash"},
        "poll_interval_seconds": 30,
        "response_rules": {"price": "It's $10", "hours": "9-5"},
        "default_response": "Thanks!",
        "webhook": {"verify_token": "tok", "access_token": "page-token"},
    }
    data.update(overrides)
    return data


def test_loads_full_config(tmp_path) -> None:
    config = settings.load_settings(_write(tmp_path, _base()))

    assert config.poll_interval_seconds == 30
    assert config.rules == (ReplyRule("price", "It's $10"), ReplyRule("hours", "9-5"))
    assert config.default_reply == "Thanks!"
    assert config.credentials.api_id == 12345
    assert config.webhook.verify_token == "tok"
    assert config.webhook.port == 8080
    assert config.dedup_path == os.path.join(str(tmp_path), "data/responded_users.json")
    assert config.session_path == os.path.join(str(tmp_path), "data/session.txt")


def test_environment_overrides_secrets(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("API_ID", "777")
    monkeypatch.setenv("META_VERIFY_TOKEN", "from-env")

    config = settings.load_settings(_write(tmp_path, _base()))

    assert config.credentials.api_id == 777
    assert config.webhook.verify_token == "from-env"


def test_legacy_interval_key_and_log_file(tmp_path) -> None:
    data = _base(check_interval_seconds=45, log_file="bot.log")
    del data["poll_interval_seconds"]

    config = settings.load_settings(_write(tmp_path, data))

    assert config.poll_interval_seconds == 45
    assert config.logging["file"] == {"enabled": True, "path": os.path.join(str(tmp_path), "bot.log")}


def test_missing_rules_fall_back_to_default(tmp_path) -> None:
    data = _base()
    del data["response_rules"]

    config = settings.load_settings(_write(tmp_path, data))

    assert config.rules == ()


@pytest.mark.parametrize("interval", [0, -5, "soon"])
def test_interval_must_be_positive_integer(tmp_path, interval) -> None:
    with pytest.raises(ConfigError):
        settings.load_settings(_write(tmp_path, _base(poll_interval_seconds=interval)))


def test_malformed_json_is_fatal(tmp_path) -> None:
    with pytest.raises(ConfigError):
        settings.load_settings(_write(tmp_path, "{broken"))


def test_missing_file_is_fatal(tmp_path) -> None:
    with pytest.raises(ConfigError):
        settings.load_settings(str(tmp_path / "absent.json"))


def test_missing_webhook_secrets_do_not_block_loading(tmp_path) -> None:
    config = settings.load_settings(_write(tmp_path, _base(webhook={"enabled": True})))

    assert config.webhook.enabled
    assert config.webhook.verify_token == ""
    with pytest.raises(ConfigError):
        settings.require_webhook_settings(config)


def test_require_webhook_settings_needs_access_token(tmp_path) -> None:
    config = settings.load_settings(_write(tmp_path, _base(webhook={"verify_token": "tok"})))
    with pytest.raises(ConfigError, match="access_token"):
        settings.require_webhook_settings(config)

    complete = settings.load_settings(_write(tmp_path, _base()))
    settings.require_webhook_settings(complete)


def test_invalid_rules_are_fatal(tmp_path) -> None:
    with pytest.raises(ConfigError):
        settings.load_settings(_write(tmp_path, _base(response_rules=[{"keyword": "price"}])))
