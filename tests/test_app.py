from __future__ import annotations

import json
import logging

import pytest

pytest.importorskip("art")

import app


def test_redacting_formatter_masks_secrets() -> None:
    formatter = app._RedactingFormatter(["page-token", ""], fmt="%(message)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "token=%s", ("page-token",), None)

    assert formatter.format(record) == "token=***"


def test_redaction_values_come_from_named_env_vars(monkeypatch) -> None:
    monkeypatch.setenv("META_ACCESS_TOKEN", "abc")
    monkeypatch.setenv("API_HASH", "abcdef")

    values = app._collect_redaction_values(
        {"redact": {"enabled": True, "patterns": ["META_ACCESS_TOKEN", "API_HASH", "UNSET_VAR"]}}
    )

    assert values == ["abcdef", "abc"]
    assert app._collect_redaction_values({"redact": {"enabled": False, "patterns": ["API_HASH"]}}) == []


def test_invalid_config_exits(tmp_path) -> None:
    with pytest.raises(SystemExit):
        app.main(["--config", str(tmp_path / "missing.json"), "poll", "--once"])


def _config_file(tmp_path, webhook: dict) -> str:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"webhook": webhook, "logging": {"enabled": False}}), encoding="utf-8"
    )
    return str(path)


def test_serve_without_verify_token_exits(tmp_path, monkeypatch) -> None:
    for key in ("META_VERIFY_TOKEN", "META_ACCESS_TOKEN", "CONFIG_PATH"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(app.settings, "load_dotenv", lambda *args, **kwargs: False)
    started = []
    monkeypatch.setattr(app, "_run_async", lambda *args, **kwargs: started.append(kwargs))

    with pytest.raises(SystemExit, match="verify_token"):
        app.main(["--config", _config_file(tmp_path, {"enabled": True}), "serve"])
    assert started == []


def test_poll_does_not_require_webhook_secrets(tmp_path, monkeypatch) -> None:
    for key in ("META_VERIFY_TOKEN", "META_ACCESS_TOKEN", "CONFIG_PATH"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(app.settings, "load_dotenv", lambda *args, **kwargs: False)
    calls = []

    async def fake_run(config, poll, serve, once=False):
        calls.append((poll, serve, once))

    monkeypatch.setattr(app, "_run_async", fake_run)

    app.main(["--config", _config_file(tmp_path, {"enabled": True}), "poll", "--once"])

    assert calls == [(True, False, True)]
