"""Core conversation processing.

This module is integration-agnostic. It only relies on ports for dedup state
and reply delivery, so the polling and webhook paths share one reply policy:
every user gets exactly one auto-reply, on first contact.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from core.errors import SendError
from core.models import Conversation, InboundEvent, latest_inbound_message
from core.ports import DedupStorePort, ReplySenderPort
from core.rules_engine import ReplyRule, select_response

LOGGER = logging.getLogger(__name__)


class ConversationProcessor:
    """Decides whether a conversation needs an auto-reply and sends it."""

    def __init__(
        self,
        rules: Iterable[ReplyRule],
        default_reply: str,
        store: DedupStorePort,
        sender: ReplySenderPort,
        channel: str = "",
    ) -> None:
        self._rules: List[ReplyRule] = list(rules)
        self._default_reply = default_reply
        self._store = store
        self._sender = sender
        self._channel = channel

    async def process(self, conversation: Conversation) -> bool:
        """Reply to the latest inbound message of a conversation if it is a first contact.

        Returns True when a reply was sent.
        """

        message = latest_inbound_message(conversation)
        if message is None:
            LOGGER.debug("No inbound messages in %s, skipping", conversation.title)
            return False

        return await self._reply_once(
            user_id=str(message.sender_id),
            recipient_id=conversation.thread_id,
            text=message.text,
        )

    async def handle_event(self, event: InboundEvent) -> bool:
        """Reply to a single webhook-delivered message."""

        return await self._reply_once(
            user_id=event.sender_id,
            recipient_id=event.sender_id,
            text=event.text,
        )

    def dedup_key(self, user_id: str) -> str:
        """Return the store key for a user, namespaced by channel when one is set."""

        if not self._channel:
            return user_id
        return f"{self._channel}:{user_id}"

    async def _reply_once(self, user_id: str, recipient_id: str, text: str) -> bool:
        key = self.dedup_key(user_id)
        # The claim is the check-then-mark critical section; it stays held
        # while the send is in flight so a concurrent path cannot also reply.
        if not self._store.try_claim(key):
            LOGGER.debug("User %s already received an auto-reply", user_id)
            return False

        response = select_response(text, self._rules, self._default_reply)
        sent = False
        try:
            await self._sender.send_message(recipient_id, response)
            sent = True
        except SendError as exc:
            LOGGER.warning("Failed to send auto-reply to %s: %s", user_id, exc)
        finally:
            if sent:
                self._store.mark_replied(key)
            else:
                # Unmarked users are retried on the next cycle.
                self._store.release(key)

        if sent:
            LOGGER.info("Sent auto-reply to %s: %s", user_id, response)
        return sent
