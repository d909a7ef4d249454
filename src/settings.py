"""Configuration loading for the auto-responder.

All user-editable settings (rules, intervals, file paths, webhook, logging)
live in a single JSON file. Secrets are read from the environment through
python-dotenv, with the JSON file as a fallback.
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

from dotenv import load_dotenv

from core.config import AppConfig, Credentials, WebhookConfig
from core.errors import ConfigError
from core.rules_engine import build_reply_rules

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default location; override with the CONFIG_PATH environment variable.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

DEFAULT_REPLY = "👋 Hello! Thanks for messaging us."


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Error parsing config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a JSON object: {path}")
    return data


def _resolve_path(base_dir: str, value: str) -> str:
    if os.path.isabs(value):
        return value
    return os.path.join(base_dir, value)


def _secret(env_name: str, fallback: Any) -> Optional[str]:
    value = os.getenv(env_name)
    if value:
        return value
    if fallback in (None, ""):
        return None
    return str(fallback)


def _positive_int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {number}")
    return number


def _build_credentials(raw: dict) -> Credentials:
    creds = raw.get("credentials", {}) or {}
    api_id_raw = _secret("API_ID", creds.get("api_id"))
    try:
        api_id = int(api_id_raw) if api_id_raw else None
    except ValueError as exc:
        raise ConfigError(f"API_ID must be numeric, got {api_id_raw!r}") from exc
    return Credentials(
        api_id=api_id,
        api_hash=_secret("API_HASH", creds.get("api_hash")),
        phone=_secret("PHONE", creds.get("phone")),
        session_name=_secret("SESSION_NAME", creds.get("session_name")) or "autoresponder",
    )


def _build_webhook(raw: dict) -> WebhookConfig:
    hook = raw.get("webhook", {}) or {}
    enabled = bool(hook.get("enabled", True))
    verify_token = _secret("META_VERIFY_TOKEN", hook.get("verify_token")) or ""
    access_token = _secret("META_ACCESS_TOKEN", hook.get("access_token"))
    try:
        port = int(hook.get("port", 8080))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"webhook.port must be an integer, got {hook.get('port')!r}") from exc
    return WebhookConfig(
        enabled=enabled,
        host=str(hook.get("host", "0.0.0.0")),
        port=port,
        verify_token=verify_token,
        access_token=access_token,
        app_secret=_secret("META_APP_SECRET", hook.get("app_secret")),
        graph_api_version=str(hook.get("graph_api_version", "v18.0")),
    )


def load_settings(path: Optional[str] = None) -> AppConfig:
    """Build the immutable AppConfig. Raises ConfigError on any invalid field."""

    load_dotenv()
    path = path or os.getenv("CONFIG_PATH") or CONFIG_PATH
    raw = _load_json_config(path)
    base_dir = os.path.dirname(os.path.abspath(path))

    try:
        rules = build_reply_rules(raw.get("response_rules"))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    default_reply = raw.get("default_response", DEFAULT_REPLY)
    if not isinstance(default_reply, str) or not default_reply.strip():
        raise ConfigError("default_response must be a non-empty string")

    logging_cfg = dict(raw.get("logging", {}) or {})
    file_cfg = dict(logging_cfg.get("file", {}) or {})
    # Top-level log_file is accepted as a shortcut for logging.file.path.
    if raw.get("log_file") and not file_cfg.get("path"):
        file_cfg.setdefault("enabled", True)
        file_cfg["path"] = raw["log_file"]
    if file_cfg.get("path"):
        file_cfg["path"] = _resolve_path(base_dir, str(file_cfg["path"]))
    logging_cfg["file"] = file_cfg

    interval_key = "poll_interval_seconds"
    if interval_key not in raw and "check_interval_seconds" in raw:
        interval_key = "check_interval_seconds"

    return AppConfig(
        credentials=_build_credentials(raw),
        poll_interval_seconds=_positive_int(raw, interval_key, 60),
        rules=tuple(rules),
        default_reply=default_reply,
        session_path=_resolve_path(base_dir, str(raw.get("session_file", "data/session.txt"))),
        dedup_path=_resolve_path(base_dir, str(raw.get("responded_users_file", "data/responded_users.json"))),
        webhook=_build_webhook(raw),
        messages_per_thread=_positive_int(raw, "messages_per_thread", 20),
        dialogs_per_refresh=_positive_int(raw, "dialogs_per_refresh", 50),
        logging=logging_cfg,
    )


def require_webhook_settings(config: AppConfig) -> None:
    """Validate the secrets needed to serve the webhook. Only called by commands that serve it."""

    if not config.webhook.verify_token:
        raise ConfigError("webhook.verify_token (or META_VERIFY_TOKEN) is required to serve the webhook")
    if not config.webhook.access_token:
        raise ConfigError("webhook.access_token (or META_ACCESS_TOKEN) is required to serve the webhook")
