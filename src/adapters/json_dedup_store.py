"""JSON file dedup store adapter.

Implements the core DedupStorePort with an in-memory map guarded by a single
lock and persisted as a human-readable JSON object of user id -> ISO timestamp.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

from core.errors import DedupStoreError
from core.ports import UserId

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_snapshot(raw: object, path: str) -> Dict[str, datetime]:
    # Older snapshots may be wrapped as {"users": {...}}.
    if isinstance(raw, dict) and set(raw) == {"users"} and isinstance(raw["users"], dict):
        raw = raw["users"]
    if not isinstance(raw, dict):
        raise DedupStoreError(f"Responded users file must contain a JSON object: {path}")

    replied: Dict[str, datetime] = {}
    for user_id, stamp in raw.items():
        if not isinstance(stamp, str):
            raise DedupStoreError(f"Invalid timestamp for user {user_id} in {path}")
        try:
            parsed = datetime.fromisoformat(stamp)
        except ValueError as exc:
            raise DedupStoreError(f"Invalid timestamp for user {user_id} in {path}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        replied[str(user_id)] = parsed
    return replied


class JsonDedupStore:
    """Thread-safe responded-users store that satisfies the DedupStorePort contract."""

    def __init__(
        self,
        path: str,
        replied: Optional[Dict[str, datetime]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._path = path
        self._replied: Dict[str, datetime] = dict(replied or {})
        self._in_flight: Set[str] = set()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @classmethod
    def load(cls, path: str, clock: Callable[[], datetime] = _utcnow) -> "JsonDedupStore":
        """Load a snapshot from disk. A missing file yields an empty store."""

        if not os.path.exists(path):
            LOGGER.info("No responded users file at %s, starting empty", path)
            return cls(path, clock=clock)

        try:
            with open(path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except json.JSONDecodeError as exc:
            raise DedupStoreError(f"Malformed responded users file {path}: {exc}") from exc
        except OSError as exc:
            raise DedupStoreError(f"Error reading responded users file {path}: {exc}") from exc

        replied = _parse_snapshot(raw, path)
        LOGGER.info("Loaded %s responded users from %s", len(replied), path)
        return cls(path, replied=replied, clock=clock)

    def has_replied(self, user_id: UserId) -> bool:
        """Return True if the user already received an auto-reply."""

        with self._lock:
            return str(user_id) in self._replied

    def mark_replied(self, user_id: UserId) -> None:
        """Record a reply. Re-marking only refreshes the timestamp."""

        key = str(user_id)
        with self._lock:
            self._replied[key] = self._clock()
            self._in_flight.discard(key)

    def try_claim(self, user_id: UserId) -> bool:
        """Atomically reserve a never-replied user for a single reply attempt."""

        key = str(user_id)
        with self._lock:
            if key in self._replied or key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def release(self, user_id: UserId) -> None:
        """Drop a claim without marking the user, so a later attempt can retry."""

        with self._lock:
            self._in_flight.discard(str(user_id))

    def snapshot(self) -> Dict[str, datetime]:
        with self._lock:
            return dict(self._replied)

    def __len__(self) -> int:
        with self._lock:
            return len(self._replied)

    def save(self) -> None:
        """Write the snapshot to a temp file and rename it over the old one."""

        with self._lock:
            data = {user_id: stamp.isoformat() for user_id, stamp in self._replied.items()}
            directory = os.path.dirname(os.path.abspath(self._path))
            tmp_path = None
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    prefix=".responded-", suffix=".tmp", dir=directory
                )
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2, sort_keys=True)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, self._path)
                tmp_path = None
            except OSError as exc:
                raise DedupStoreError(f"Error writing responded users file {self._path}: {exc}") from exc
            finally:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.unlink(tmp_path)


def load_or_recover(path: str) -> JsonDedupStore:
    """Load the store at startup, setting a malformed snapshot aside.

    A corrupt file is renamed to ``<path>.corrupt`` so the next save does
    not overwrite it, and an empty store is returned.
    """

    try:
        return JsonDedupStore.load(path)
    except DedupStoreError as exc:
        LOGGER.error("Error loading responded users: %s", exc)
        backup = f"{path}.corrupt"
        try:
            os.replace(path, backup)
            LOGGER.warning("Moved unreadable responded users file to %s", backup)
        except OSError:
            LOGGER.exception("Could not move %s aside", path)
        return JsonDedupStore(path)
