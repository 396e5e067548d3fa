"""Snapshot service: the programmatic surface used by the dashboard and CLI.

One ``SnapshotService`` per gateway/tenant.  There is no module-level
instance; construct it with the gateway and configuration it should use.

Builds and restores against the same scope key are serialized with an
advisory per-scope ``asyncio.Lock``.  Locks are per process and keyed by the
exact scope key.  Different keys never wait for each other, even when their
rows overlap: an unscoped build can run alongside a restore scoped to ``p1``.
A lock is dropped once no coroutine holds or waits on it.

Usage:
    service = SnapshotService(gateway, config)

    snapshot = await service.create_snapshot(scope_key="p1")
    report = service.validate_snapshot(snapshot)
    result = await service.restore_snapshot(snapshot, RestoreOptions(dry_run=True))

    task = service.schedule_automatic_snapshots(interval_minutes=60)
    ...
    await task.stop()
"""

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TextIO

from innsync_backup.adapters.base import EntityGateway
from innsync_backup.config.models import BackupConfig
from innsync_backup.snapshot.artifact import parse_snapshot, serialize_snapshot, snapshot_filename
from innsync_backup.snapshot.builder import SnapshotBuilder
from innsync_backup.snapshot.errors import SnapshotError, SnapshotParseError
from innsync_backup.snapshot.history import (
    HistoryLedger,
    HistoryStore,
    InMemoryHistoryStore,
    JsonFileHistoryStore,
    utc_now,
)
from innsync_backup.snapshot.models import (
    DEFAULT_SCHEMA,
    HistoryEntry,
    RestoreOptions,
    RestoreResult,
    Snapshot,
    SnapshotSchema,
    ValidationReport,
)
from innsync_backup.snapshot.restore import RestoreOrchestrator
from innsync_backup.snapshot.scheduler import ScheduledSnapshotTask
from innsync_backup.snapshot.validator import validate_snapshot

logger = logging.getLogger(__name__)


class SnapshotService:
    """Create, download, validate, and restore snapshots.

    Args:
        gateway: Entity gateway for the operational store.
        config: Snapshot configuration.  Defaults to ``BackupConfig()``.
        schema: Collections and relationships.  Defaults to the property
            management schema.
        history_store: Ledger storage.  Defaults to a JSON file at
            ``config.history_path``, or memory when that is unset.
        clock: Returns the current time (UTC).
    """

    def __init__(
        self,
        gateway: EntityGateway,
        config: BackupConfig | None = None,
        schema: SnapshotSchema = DEFAULT_SCHEMA,
        history_store: HistoryStore | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.config = config if config is not None else BackupConfig()
        self.schema = schema

        if history_store is None:
            if self.config.history_path:
                history_store = JsonFileHistoryStore(self.config.history_path)
            else:
                history_store = InMemoryHistoryStore()

        self.ledger = HistoryLedger(
            history_store,
            max_entries=self.config.history_max_entries,
            clock=clock,
        )
        self.builder = SnapshotBuilder(gateway, schema, self.config, self.ledger, clock=clock)
        self.orchestrator = RestoreOrchestrator(gateway, schema, self.config, self.builder)
        self._scope_locks: weakref.WeakValueDictionary[str | None, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, scope_key: str | None) -> asyncio.Lock:
        lock = self._scope_locks.get(scope_key)
        if lock is None:
            lock = asyncio.Lock()
            self._scope_locks[scope_key] = lock
        return lock

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def create_snapshot(
        self,
        scope_key: str | None = None,
        reason: str = "manual",
        cancel_event: asyncio.Event | None = None,
    ) -> Snapshot:
        """Build a snapshot.

        Raises:
            SnapshotBuildError: Fetch failure or size ceiling exceeded.
            SnapshotCancelledError: ``cancel_event`` was set.
        """
        async with self._lock_for(scope_key):
            return await self.builder.build(scope_key, reason, cancel_event)

    async def emergency_snapshot(self) -> Snapshot:
        """Build an unscoped snapshot tagged ``emergency``."""
        return await self.create_snapshot(None, "emergency")

    async def download_snapshot(
        self,
        sink: str | Path | TextIO,
        scope_key: str | None = None,
        reason: str = "user_initiated",
    ) -> bool:
        """Build a snapshot and write it as indented JSON.

        Args:
            sink: A directory (the file is named
                ``<product>_backup_<scope>_<YYYY-MM-DD>.json``) or an open
                text stream.
            scope_key: Optional property scope.
            reason: Provenance recorded in the snapshot.

        Returns:
            ``True`` if the snapshot was built and written.
        """
        try:
            snapshot = await self.create_snapshot(scope_key, reason)
        except SnapshotError as e:
            logger.error(f"Snapshot download failed: {e}")
            return False

        contents = serialize_snapshot(snapshot, indent=2)
        try:
            if isinstance(sink, (str, Path)):
                directory = Path(sink)
                directory.mkdir(parents=True, exist_ok=True)
                created = datetime.fromisoformat(snapshot.created_at)
                path = directory / snapshot_filename(
                    self.config.product_name, scope_key, created.date()
                )
                path.write_text(contents)
                logger.info("Snapshot downloaded", extra={"path": str(path)})
            else:
                sink.write(contents)
                logger.info("Snapshot downloaded")
        except OSError as e:
            logger.error(f"Snapshot download failed: {e}")
            return False
        return True

    def validate_snapshot(self, snapshot: Snapshot) -> ValidationReport:
        """Validate a snapshot against this service's schema and version."""
        report = validate_snapshot(snapshot, self.schema, self.config.format_version)
        if report.warnings:
            logger.warning("Snapshot validation warnings", extra={"warnings": report.warnings})
        if not report.is_valid:
            logger.error("Snapshot validation failed", extra={"errors": report.errors})
        return report

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore_snapshot(
        self,
        snapshot: Snapshot,
        options: RestoreOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RestoreResult:
        """Restore a snapshot while holding the scope lock."""
        options = options or RestoreOptions()
        async with self._lock_for(options.scope_key):
            return await self.orchestrator.restore(snapshot, options, cancel_event)

    async def restore_from_file(
        self,
        contents: str | bytes,
        options: RestoreOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RestoreResult:
        """Parse snapshot file contents and restore them.

        A parse failure is reported as a single error; nothing is written.
        """
        try:
            snapshot = parse_snapshot(contents, self.schema)
        except SnapshotParseError as e:
            logger.error(f"Snapshot file rejected: {e}")
            return RestoreResult(
                success=False,
                restored_records=0,
                errors=[f"Invalid snapshot file: {e}"],
            )
        return await self.restore_snapshot(snapshot, options, cancel_event)

    # ------------------------------------------------------------------
    # Scheduling and history
    # ------------------------------------------------------------------

    def schedule_automatic_snapshots(self, interval_minutes: float = 60) -> ScheduledSnapshotTask:
        """Start periodic unscoped snapshots on the running event loop.

        Returns:
            The running task; call ``stop()`` or ``cancel()`` to end it.
        """
        task = ScheduledSnapshotTask(
            lambda: self.create_snapshot(None, "scheduled"),
            interval_seconds=interval_minutes * 60,
        )
        return task.start()

    def list_history(self) -> list[HistoryEntry]:
        return self.ledger.list_history()

    def cleanup_history(self, max_age_days: int | None = None) -> int:
        """Prune history older than ``max_age_days`` (default from config)."""
        if max_age_days is None:
            max_age_days = self.config.history_max_age_days
        return self.ledger.cleanup(max_age_days)
