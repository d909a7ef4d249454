"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class ChatMessage:
    """A single message inside a conversation."""

    sender_id: Optional[str]
    text: str
    outgoing: bool
    date: Optional[datetime] = None


@dataclass(frozen=True)
class Conversation:
    """Read-only view of a direct-message thread.

    ``messages`` is ordered oldest to newest. ``thread_id`` is the address
    replies are sent to.
    """

    thread_id: str
    title: str
    messages: Tuple[ChatMessage, ...]


@dataclass(frozen=True)
class InboundEvent:
    """A single message decoded from a webhook delivery."""

    sender_id: str
    text: str
    message_id: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class CycleStats:
    """Counters collected during one poll cycle."""

    conversations: int = 0
    replies: int = 0
    failures: int = 0
    skipped: bool = False


def latest_inbound_message(conversation: Conversation) -> Optional[ChatMessage]:
    """Return the newest message not sent by our own account, if any."""

    for message in reversed(conversation.messages):
        if message.outgoing or message.sender_id is None:
            continue
        return message
    return None
