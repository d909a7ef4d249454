"""Shared test doubles for the core ports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from core.errors import InboxError, SendError
from core.models import ChatMessage, Conversation

BOT_ID = "999"


class FakeSender:
    def __init__(self, fail_for: Optional[set[str]] = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_for = fail_for or set()

    async def send_message(self, recipient_id: str, text: str) -> None:
        if recipient_id in self.fail_for:
            raise SendError(f"cannot reach {recipient_id}")
        self.sent.append((recipient_id, text))


class FakeInbox(FakeSender):
    def __init__(
        self,
        inbox: Optional[List[Conversation]] = None,
        pending: Optional[List[Conversation]] = None,
    ) -> None:
        super().__init__()
        self.inbox = inbox or []
        self.pending = pending or []
        self.inbox_error: Optional[Exception] = None
        self.pending_error: Optional[Exception] = None
        self.refreshes = 0
        self.exported = 0

    async def refresh_inbox(self) -> List[Conversation]:
        self.refreshes += 1
        if self.inbox_error is not None:
            raise self.inbox_error
        return list(self.inbox)

    async def refresh_pending(self) -> List[Conversation]:
        if self.pending_error is not None:
            raise self.pending_error
        return list(self.pending)

    def import_session(self) -> Optional[str]:
        return None

    def export_session(self) -> None:
        self.exported += 1


def message(sender_id: Optional[str], text: str, minute: int = 0) -> ChatMessage:
    return ChatMessage(
        sender_id=sender_id,
        text=text,
        outgoing=sender_id == BOT_ID,
        date=datetime(2024, 1, 1, 12, minute, tzinfo=timezone.utc),
    )


def conversation(thread_id: str, *messages: ChatMessage) -> Conversation:
    return Conversation(thread_id=thread_id, title=f"user {thread_id}", messages=tuple(messages))


def inbox_error() -> InboxError:
    return InboxError("upstream unavailable")
