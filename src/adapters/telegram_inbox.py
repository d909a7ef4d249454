"""Telethon inbox adapter.

Implements the core InboxClientPort. Private chats in the main folder form the
regular inbox; the archive folder is treated as the pending queue, since
Telegram can auto-archive new chats from non-contacts.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from typing import Callable, List, Optional

from telethon import TelegramClient, errors

from adapters.telegram_mapper import conversation_from_dialog, is_direct_dialog
from client import build_client
from core.config import Credentials
from core.errors import InboxError, SendError
from core.models import Conversation

LOGGER = logging.getLogger(__name__)

MAIN_FOLDER = 0
ARCHIVE_FOLDER = 1

_TRANSIENT_ERRORS = (errors.RPCError, ConnectionError, OSError, asyncio.TimeoutError)


class TelegramInboxClient:
    """InboxClientPort backed by a Telethon user session."""

    def __init__(
        self,
        credentials: Credentials,
        session_path: str,
        messages_per_thread: int = 20,
        dialogs_per_refresh: int = 50,
        client_factory: Callable[[Credentials, Optional[str]], TelegramClient] = build_client,
    ) -> None:
        self._credentials = credentials
        self._session_path = session_path
        self._messages_per_thread = messages_per_thread
        self._dialogs_per_refresh = dialogs_per_refresh
        self._client_factory = client_factory
        self._client: Optional[TelegramClient] = None

    @property
    def client(self) -> TelegramClient:
        if self._client is None:
            raise RuntimeError("import_session() must be called before using the client")
        return self._client

    def import_session(self) -> Optional[str]:
        """Read the saved session (if any) and build the client around it."""

        session_string: Optional[str] = None
        if os.path.exists(self._session_path):
            LOGGER.info("Importing existing session from %s", self._session_path)
            with open(self._session_path, "r", encoding="utf-8") as handle:
                session_string = handle.read().strip() or None
        self._client = self._client_factory(self._credentials, session_string)
        return session_string

    def export_session(self) -> None:
        """Persist the current session string with owner-only permissions."""

        if self._client is None:
            return
        session_string = self._client.session.save()
        directory = os.path.dirname(os.path.abspath(self._session_path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".session-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(session_string)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._session_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        LOGGER.info("Session exported to %s", self._session_path)

    async def refresh_inbox(self) -> List[Conversation]:
        return await self._fetch_folder(MAIN_FOLDER)

    async def refresh_pending(self) -> List[Conversation]:
        return await self._fetch_folder(ARCHIVE_FOLDER)

    async def _fetch_folder(self, folder: int) -> List[Conversation]:
        conversations: List[Conversation] = []
        try:
            async for dialog in self.client.iter_dialogs(limit=self._dialogs_per_refresh, folder=folder):
                if not is_direct_dialog(dialog):
                    continue
                messages = await self.client.get_messages(dialog.entity, limit=self._messages_per_thread)
                conversations.append(conversation_from_dialog(dialog, messages))
        except _TRANSIENT_ERRORS as exc:
            raise InboxError(f"Failed to refresh folder {folder}: {exc}") from exc
        return conversations

    async def send_message(self, recipient_id: str, text: str) -> None:
        try:
            await self.client.send_message(int(recipient_id), text)
        except (ValueError, *_TRANSIENT_ERRORS) as exc:
            raise SendError(f"Failed to send message to {recipient_id}: {exc}") from exc
