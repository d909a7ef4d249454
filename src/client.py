"""Telegram client factory.

The session is kept as a Telethon ``StringSession`` so the auto-responder owns
when it is imported and exported, instead of letting Telethon write a
``.session`` database on its own schedule.
"""

from __future__ import annotations

import logging
from typing import Optional

from telethon import TelegramClient
from telethon.sessions import StringSession

from core.config import Credentials


def build_client(credentials: Credentials, session_string: Optional[str] = None) -> TelegramClient:
    """Create a Telethon client from credentials and an optional saved session."""

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not credentials.api_id or not credentials.api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(StringSession(session_string), credentials.api_id, credentials.api_hash)
