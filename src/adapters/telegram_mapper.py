"""Telegram-to-core conversation mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from core.models import ChatMessage, Conversation


def is_direct_dialog(dialog: Any) -> bool:
    """Return True for one-to-one chats with a real (non-bot) user."""

    if not getattr(dialog, "is_user", False):
        return False
    entity = getattr(dialog, "entity", None)
    if getattr(entity, "bot", False):
        return False
    # Saved Messages is a dialog with ourselves.
    if getattr(entity, "is_self", False):
        return False
    return True


def dialog_title(dialog: Any) -> str:
    """Return a human-friendly name for a dialog."""

    entity = getattr(dialog, "entity", None)
    username = getattr(entity, "username", None)
    if username:
        return f"@{username}"
    name = getattr(dialog, "name", None)
    if name:
        return str(name)
    first = getattr(entity, "first_name", None)
    last = getattr(entity, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    entity_id = getattr(entity, "id", None)
    return str(entity_id or "unknown")


def message_from_telethon(message: Any) -> ChatMessage:
    """Build a core ChatMessage from a Telethon Message."""

    sender_id: Optional[int] = getattr(message, "sender_id", None)
    return ChatMessage(
        sender_id=str(sender_id) if sender_id is not None else None,
        text=getattr(message, "raw_text", None) or "",
        outgoing=bool(getattr(message, "out", False)),
        date=getattr(message, "date", None),
    )


def conversation_from_dialog(dialog: Any, messages: Iterable[Any]) -> Conversation:
    """Build a core Conversation from a dialog and its recent messages.

    Telethon returns history newest first; the core expects oldest first.
    """

    items = [message_from_telethon(message) for message in messages]
    items.reverse()
    items.sort(key=lambda item: item.date.timestamp() if item.date else 0.0)
    return Conversation(
        thread_id=str(dialog.id),
        title=dialog_title(dialog),
        messages=tuple(items),
    )
