"""Webhook verification and payload decoding (core domain).

The HTTP layer lives in ``adapters.webhook_app``; this module only knows the
platform's handshake rules and payload shapes.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Optional

from core.errors import WebhookDecodeError
from core.models import InboundEvent

SUBSCRIBE_MODE = "subscribe"
SIGNATURE_PREFIX = "sha256="


def verify_subscription(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    expected_token: str,
) -> Optional[str]:
    """Return the challenge to echo when the handshake is valid, else None."""

    if not expected_token or mode != SUBSCRIBE_MODE or token is None:
        return None
    if not hmac.compare_digest(token.encode("utf-8"), expected_token.encode("utf-8")):
        return None
    return challenge or ""


def verify_signature(body: bytes, signature_header: Optional[str], app_secret: str) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw request body."""

    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False
    expected = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[len(SIGNATURE_PREFIX):], expected)


def _first(container: Any, key: str) -> Any:
    if not isinstance(container, dict):
        raise WebhookDecodeError(f"Expected an object around {key!r}")
    items = container.get(key)
    if not isinstance(items, list) or not items:
        raise WebhookDecodeError(f"Expected a non-empty {key!r} list")
    return items[0]


def _text_of(message: dict) -> str:
    text = message.get("text")
    if isinstance(text, dict):
        text = text.get("body")
    if text is None:
        return ""
    if not isinstance(text, str):
        raise WebhookDecodeError("Message text must be a string")
    return text


def _decode_changes_message(entry: dict) -> Optional[InboundEvent]:
    change = _first(entry, "changes")
    value = change.get("value") if isinstance(change, dict) else None
    if not isinstance(value, dict):
        raise WebhookDecodeError("Change is missing its 'value' object")

    messages = value.get("messages")
    if messages is None or messages == []:
        # Status callbacks (delivered/read) carry no messages.
        return None
    message = _first(value, "messages")
    if not isinstance(message, dict):
        raise WebhookDecodeError("Message must be an object")

    sender_id = message.get("from")
    if isinstance(sender_id, dict):
        sender_id = sender_id.get("id")
    if not sender_id:
        raise WebhookDecodeError("Message is missing its sender id")

    return InboundEvent(
        sender_id=str(sender_id),
        text=_text_of(message),
        message_id=message.get("id"),
        timestamp=str(message["timestamp"]) if message.get("timestamp") is not None else None,
    )


def _decode_messaging_event(entry: dict) -> Optional[InboundEvent]:
    messaging = _first(entry, "messaging")
    if not isinstance(messaging, dict):
        raise WebhookDecodeError("Messaging event must be an object")

    message = messaging.get("message")
    if not isinstance(message, dict) or message.get("is_echo"):
        # Postbacks, reads and our own echoes are not replied to.
        return None

    sender = messaging.get("sender")
    sender_id = sender.get("id") if isinstance(sender, dict) else None
    if not sender_id:
        raise WebhookDecodeError("Messaging event is missing sender.id")

    timestamp = messaging.get("timestamp")
    return InboundEvent(
        sender_id=str(sender_id),
        text=_text_of(message),
        message_id=message.get("mid"),
        timestamp=str(timestamp) if timestamp is not None else None,
    )


def decode_event(payload: Any) -> Optional[InboundEvent]:
    """Decode the first message of the first change of the first entry.

    Returns None for well-formed deliveries that carry no message. Raises
    WebhookDecodeError when the expected nesting is missing or mistyped.
    """

    entry = _first(payload, "entry")
    if not isinstance(entry, dict):
        raise WebhookDecodeError("Entry must be an object")

    if "changes" in entry:
        return _decode_changes_message(entry)
    if "messaging" in entry:
        return _decode_messaging_event(entry)
    raise WebhookDecodeError("Entry has neither 'changes' nor 'messaging'")
