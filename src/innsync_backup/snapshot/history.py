"""History ledger of snapshot events with bounded retention.

The ledger depends only on the ``HistoryStore`` protocol; the bundled
stores keep entries in memory or in a JSON file.

Usage:
    from innsync_backup.snapshot.history import HistoryLedger, JsonFileHistoryStore

    ledger = HistoryLedger(JsonFileHistoryStore("backups/history.json"), max_entries=50)
    ledger.record_event(HistoryEntry(timestamp=now, reason="manual", record_count=42))
    ledger.cleanup(max_age_days=30)
"""

import json
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from innsync_backup.snapshot.models import HistoryEntry

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(ts: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class HistoryStore(Protocol):
    """Durable storage for history entries."""

    def append(self, entry: HistoryEntry, max_entries: int) -> None:
        """Append ``entry``, evicting the oldest entries beyond ``max_entries``."""
        ...

    def list_entries(self) -> list[HistoryEntry]:
        """Return entries in append order (oldest first)."""
        ...

    def prune(self, cutoff: datetime) -> int:
        """Remove entries older than ``cutoff``; return how many were removed."""
        ...


class InMemoryHistoryStore:
    """History store held in process memory."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def append(self, entry: HistoryEntry, max_entries: int) -> None:
        self._entries.append(entry)
        if len(self._entries) > max_entries:
            del self._entries[: len(self._entries) - max_entries]

    def list_entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def prune(self, cutoff: datetime) -> int:
        before = len(self._entries)
        self._entries = [e for e in self._entries if _aware(e.timestamp) >= cutoff]
        return before - len(self._entries)


class JsonFileHistoryStore:
    """History store backed by a JSON file.

    Every write replaces the file atomically (temp file + ``os.replace``).
    An unreadable or corrupt file reads as an empty history.

    Args:
        path: Location of the JSON file.  Parent directories are created on
            first write.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, entry: HistoryEntry, max_entries: int) -> None:
        entries = self.list_entries()
        entries.append(entry)
        if len(entries) > max_entries:
            entries = entries[len(entries) - max_entries:]
        self._write(entries)

    def list_entries(self) -> list[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text())
            return [HistoryEntry.model_validate(item) for item in raw]
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Unreadable snapshot history at {self.path}: {e}")
            return []

    def prune(self, cutoff: datetime) -> int:
        entries = self.list_entries()
        kept = [e for e in entries if _aware(e.timestamp) >= cutoff]
        removed = len(entries) - len(kept)
        if removed:
            self._write(kept)
        return removed

    def _write(self, entries: list[HistoryEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([e.model_dump(mode="json") for e in entries], indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class HistoryLedger:
    """Append-only, bounded log of snapshot events.

    Args:
        store: Backing ``HistoryStore``.
        max_entries: Hard cap on entry count; oldest entries are evicted.
        clock: Returns the current time (UTC).  Injected for tests.
    """

    def __init__(
        self,
        store: HistoryStore,
        max_entries: int = 50,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.max_entries = max_entries
        self.clock = clock

    def record_event(self, entry: HistoryEntry) -> None:
        """Append a snapshot event."""
        self.store.append(entry, self.max_entries)
        logger.debug(
            "Recorded snapshot history entry",
            extra={"reason": entry.reason, "record_count": entry.record_count},
        )

    def list_history(self) -> list[HistoryEntry]:
        """Return entries oldest to newest."""
        return self.store.list_entries()

    def cleanup(self, max_age_days: int = 30) -> int:
        """Remove entries older than ``max_age_days``.

        Returns:
            Number of entries removed.
        """
        cutoff = _aware(self.clock()) - timedelta(days=max_age_days)
        removed = self.store.prune(cutoff)
        logger.info(
            "Cleaned up snapshot history",
            extra={"removed": removed, "remaining": len(self.store.list_entries())},
        )
        return removed
