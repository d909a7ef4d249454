"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the dedup store, the messaging client,
and reply delivery so the core can run against different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Union

from core.models import Conversation

UserId = Union[int, str]


class DedupStorePort(Protocol):
    """Thread-safe record of users that already received an auto-reply."""

    def has_replied(self, user_id: UserId) -> bool:
        ...

    def mark_replied(self, user_id: UserId) -> None:
        ...

    def try_claim(self, user_id: UserId) -> bool:
        ...

    def release(self, user_id: UserId) -> None:
        ...

    def save(self) -> None:
        ...

    def snapshot(self) -> Dict[str, datetime]:
        ...


class ReplySenderPort(Protocol):
    """Delivers a reply text to a recipient."""

    async def send_message(self, recipient_id: str, text: str) -> None:
        ...


class InboxClientPort(ReplySenderPort, Protocol):
    """Messaging session client used by the poll scheduler."""

    async def refresh_inbox(self) -> List[Conversation]:
        ...

    async def refresh_pending(self) -> List[Conversation]:
        ...

    def import_session(self) -> Optional[str]:
        ...

    def export_session(self) -> None:
        ...
