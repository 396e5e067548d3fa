"""Build point-in-time snapshots from the entity gateway.

Collections are fetched concurrently (fan-out/fan-in), sanitized, counted,
digested, and size-checked.  A successful build is recorded in the
history ledger; a failed or cancelled build leaves no trace there.

Usage:
    builder = SnapshotBuilder(gateway, DEFAULT_SCHEMA, config, ledger)
    snapshot = await builder.build(scope_key="p1", reason="manual")
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime

from innsync_backup.adapters.base import EntityGateway
from innsync_backup.config.models import BackupConfig
from innsync_backup.snapshot.artifact import serialize_snapshot
from innsync_backup.snapshot.errors import (
    GatewayFetchError,
    SnapshotCancelledError,
    SnapshotSizeExceededError,
)
from innsync_backup.snapshot.history import HistoryLedger, utc_now
from innsync_backup.snapshot.integrity import compute_digest
from innsync_backup.snapshot.models import (
    CollectionDef,
    HistoryEntry,
    Snapshot,
    SnapshotMetadata,
    SnapshotSchema,
)
from innsync_backup.snapshot.sanitizer import sanitize_record

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """Owns snapshot construction.

    Args:
        gateway: Entity gateway to read collections from.
        schema: Collections to export and their scope fields.
        config: Size ceiling, gateway timeout, and format version.
        ledger: History ledger that receives one entry per successful build.
        produced_by: Provenance written to ``metadata.exportedBy``.
        clock: Returns the current time (UTC).
    """

    def __init__(
        self,
        gateway: EntityGateway,
        schema: SnapshotSchema,
        config: BackupConfig,
        ledger: HistoryLedger,
        produced_by: str = "system",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.schema = schema
        self.config = config
        self.ledger = ledger
        self.produced_by = produced_by
        self.clock = clock

    async def build(
        self,
        scope_key: str | None = None,
        reason: str = "manual",
        cancel_event: asyncio.Event | None = None,
    ) -> Snapshot:
        """Build a snapshot of every schema collection.

        Args:
            scope_key: Restrict scoped collections to one property.  Collections
                without a ``scope_field`` are fetched unfiltered.
            reason: Why the snapshot is taken (manual, scheduled,
                pre_restore_backup, emergency, ...).
            cancel_event: Setting this event aborts outstanding fetches.

        Returns:
            The sanitized snapshot.

        Raises:
            GatewayFetchError: A collection could not be fetched.
            SnapshotSizeExceededError: The serialized snapshot is too large.
            SnapshotCancelledError: ``cancel_event`` was set.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise SnapshotCancelledError("Snapshot build cancelled before start")

        logger.info(
            "Starting snapshot build",
            extra={"scope_key": scope_key, "reason": reason},
        )
        created_at = self.clock()

        fetched = await self._fetch_all(scope_key, cancel_event)

        collections: dict[str, list[dict]] = {}
        failures: list[GatewayFetchError] = []
        for coll, result in zip(self.schema.collections, fetched):
            if isinstance(result, GatewayFetchError):
                logger.error(str(result), extra={"collection": coll.name})
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                collections[coll.name] = result
        if failures:
            raise failures[0]

        total_records = sum(len(records) for records in collections.values())
        snapshot = Snapshot(
            created_at=created_at.isoformat(),
            format_version=self.config.format_version,
            collections=collections,
            metadata=SnapshotMetadata(
                total_records=total_records,
                integrity_digest=compute_digest(collections),
                produced_by=self.produced_by,
                reason=reason,
            ),
        )

        size_bytes = len(serialize_snapshot(snapshot).encode("utf-8"))
        if size_bytes > self.config.max_snapshot_bytes:
            error = SnapshotSizeExceededError(size_bytes, self.config.max_snapshot_bytes)
            logger.error(str(error), extra={"scope_key": scope_key})
            raise error

        self._record_history(snapshot, scope_key, created_at)

        logger.info(
            "Snapshot build completed",
            extra={
                "total_records": total_records,
                "size_kb": round(size_bytes / 1024),
                "scope_key": scope_key,
            },
        )
        return snapshot

    async def _fetch_all(
        self,
        scope_key: str | None,
        cancel_event: asyncio.Event | None,
    ) -> list:
        """Fetch all collections concurrently, racing ``cancel_event``."""
        fan_out = asyncio.ensure_future(
            asyncio.gather(
                *(self._fetch(coll, scope_key) for coll in self.schema.collections),
                return_exceptions=True,
            )
        )
        if cancel_event is None:
            return await fan_out

        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({fan_out, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            fan_out.cancel()
            raise
        finally:
            waiter.cancel()

        if not fan_out.done():
            # A cancelled gather finishes with CancelledError as its exception
            fan_out.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await fan_out
            logger.warning("Snapshot build cancelled", extra={"scope_key": scope_key})
            raise SnapshotCancelledError("Snapshot build cancelled during fetch")
        return fan_out.result()

    async def _fetch(self, coll: CollectionDef, scope_key: str | None) -> list[dict]:
        """Fetch and sanitize one collection."""
        filters = None
        if scope_key is not None and coll.scope_field:
            filters = {coll.scope_field: scope_key}
        try:
            rows = await asyncio.wait_for(
                self.gateway.select(coll.name, "*", filters=filters),
                timeout=self.config.gateway_timeout_seconds,
            )
        except Exception as e:
            raise GatewayFetchError(coll.name, e) from e
        return [sanitize_record(row) for row in rows or []]

    def _record_history(
        self,
        snapshot: Snapshot,
        scope_key: str | None,
        created_at: datetime,
    ) -> None:
        entry = HistoryEntry(
            timestamp=created_at,
            scope_key=scope_key,
            reason=snapshot.metadata.reason,
            record_count=snapshot.metadata.total_records,
        )
        try:
            self.ledger.record_event(entry)
        except OSError as e:
            # The snapshot itself is still good
            logger.warning(f"Failed to record snapshot history: {e}")
