"""Fixed-interval poll scheduler.

Each cycle refreshes the pending (first-contact) queue and the regular inbox,
runs every conversation through the processor, then flushes the dedup store.
Cycles run once at startup and then on a fixed cadence until ``stop()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from core.errors import DedupStoreError, InboxError
from core.models import Conversation, CycleStats
from core.ports import DedupStorePort, InboxClientPort
from core.processor import ConversationProcessor

LOGGER = logging.getLogger(__name__)


def merge_conversations(*groups: List[Conversation]) -> List[Conversation]:
    """Concatenate conversation lists, keeping the first copy of each thread."""

    merged: Dict[str, Conversation] = {}
    for group in groups:
        for conversation in group:
            merged.setdefault(conversation.thread_id, conversation)
    return list(merged.values())


class PollScheduler:
    """Drives the polling path for the lifetime of the process."""

    def __init__(
        self,
        inbox: InboxClientPort,
        processor: ConversationProcessor,
        store: DedupStorePort,
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._inbox = inbox
        self._processor = processor
        self._store = store
        self._interval = interval_seconds
        self._stop = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask the run loop to exit after the current cycle."""

        self._stop.set()

    async def run(self) -> None:
        """Run cycles until stopped. The first cycle runs immediately."""

        loop = asyncio.get_running_loop()
        LOGGER.info("Poll scheduler started (every %ss)", self._interval)
        next_tick = loop.time()
        while not self._stop.is_set():
            try:
                await self.run_cycle()
            except Exception:
                LOGGER.exception("Poll cycle failed, retrying on the next tick")
            next_tick += self._interval
            delay = max(0.0, next_tick - loop.time())
            if delay == 0.0:
                # A cycle overran the interval; restart the cadence from now.
                next_tick = loop.time()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
        LOGGER.info("Poll scheduler stopped")

    async def run_cycle(self) -> CycleStats:
        """Run one refresh/process/persist cycle. Never raises on upstream errors."""

        LOGGER.info("Checking for new messages")

        pending: List[Conversation] = []
        try:
            pending = await self._inbox.refresh_pending()
            LOGGER.info("Found %s pending conversations", len(pending))
        except InboxError as exc:
            LOGGER.warning("Error syncing pending inbox: %s", exc)

        try:
            regular = await self._inbox.refresh_inbox()
        except InboxError as exc:
            LOGGER.error("Error syncing inbox, skipping this cycle: %s", exc)
            return CycleStats(skipped=True)
        LOGGER.info("Found %s conversations", len(regular))

        conversations = merge_conversations(pending, regular)
        replies = 0
        failures = 0
        for conversation in conversations:
            LOGGER.debug("Processing conversation with %s (%s)", conversation.title, conversation.thread_id)
            try:
                if await self._processor.process(conversation):
                    replies += 1
            except Exception:
                failures += 1
                LOGGER.exception("Error while processing conversation %s", conversation.thread_id)

        self._save_store()

        stats = CycleStats(conversations=len(conversations), replies=replies, failures=failures)
        LOGGER.info(
            "Cycle complete: conversations=%s, replies=%s, failures=%s",
            stats.conversations,
            stats.replies,
            stats.failures,
        )
        return stats

    def cleanup(self) -> None:
        """Flush dedup state and export the client session before exit."""

        try:
            self._inbox.export_session()
        except Exception:
            LOGGER.exception("Failed to export session during cleanup")
        self._save_store()
        LOGGER.info("Cleanup completed")

    def _save_store(self) -> None:
        try:
            self._store.save()
        except DedupStoreError as exc:
            LOGGER.error("Error saving responded users: %s", exc)
