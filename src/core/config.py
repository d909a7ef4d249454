"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from core.rules_engine import ReplyRule


@dataclass(frozen=True)
class Credentials:
    """Messaging client credentials. Secrets usually come from the environment."""

    api_id: Optional[int]
    api_hash: Optional[str]
    phone: Optional[str] = None
    session_name: str = "autoresponder"


@dataclass(frozen=True)
class WebhookConfig:
    """Settings for the push-based webhook gateway."""

    enabled: bool
    host: str
    port: int
    verify_token: str
    access_token: Optional[str]
    app_secret: Optional[str] = None
    graph_api_version: str = "v18.0"


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration built once at startup."""

    credentials: Credentials
    poll_interval_seconds: int
    rules: Tuple[ReplyRule, ...]
    default_reply: str
    session_path: str
    dedup_path: str
    webhook: WebhookConfig
    messages_per_thread: int = 20
    dialogs_per_refresh: int = 50
    logging: Dict[str, Any] = field(default_factory=dict)
