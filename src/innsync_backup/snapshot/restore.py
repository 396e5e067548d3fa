"""Replay a snapshot into the entity gateway.

Restore order is the schema's dependency order (parents first).  Each
collection is upserted keyed by its primary key; nothing is ever deleted.
A failed collection is reported in ``RestoreResult.errors``; whether later
collections are still attempted depends on ``RestoreOptions.failure_policy``:

- ``"best_effort"`` (default): every collection is attempted.  Children of
  a failed parent may be written with dangling foreign keys.
- ``"abort_on_failure"``: the first failed collection stops the restore.

Usage:
    orchestrator = RestoreOrchestrator(gateway, DEFAULT_SCHEMA, config, builder)
    result = await orchestrator.restore(snapshot, RestoreOptions(dry_run=True))
"""

import asyncio
import logging

from innsync_backup.adapters.base import EntityGateway
from innsync_backup.config.models import BackupConfig
from innsync_backup.snapshot.builder import SnapshotBuilder
from innsync_backup.snapshot.errors import SnapshotCancelledError, SnapshotError
from innsync_backup.snapshot.models import (
    CollectionDef,
    RestoreOptions,
    RestoreResult,
    Snapshot,
    SnapshotSchema,
)
from innsync_backup.snapshot.sanitizer import mask_sensitive
from innsync_backup.snapshot.validator import validate_snapshot

logger = logging.getLogger(__name__)

PRE_RESTORE_REASON = "pre_restore_backup"


class RestoreOrchestrator:
    """Validate, safety-snapshot, and replay snapshots.

    Args:
        gateway: Entity gateway to write collections to.
        schema: Collections in dependency order.
        config: Format version, batch size, and gateway timeout.
        builder: Builder used for the pre-restore safety snapshot.
    """

    def __init__(
        self,
        gateway: EntityGateway,
        schema: SnapshotSchema,
        config: BackupConfig,
        builder: SnapshotBuilder,
    ) -> None:
        self.gateway = gateway
        self.schema = schema
        self.config = config
        self.builder = builder

    async def restore(
        self,
        snapshot: Snapshot,
        options: RestoreOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RestoreResult:
        """Restore ``snapshot`` according to ``options``.

        Args:
            snapshot: Snapshot to replay.
            options: Restore controls.  Defaults validate, take a safety
                snapshot, and write.
            cancel_event: Setting this event stops the safety snapshot and
                the restore before the next batch; the result is marked
                ``cancelled``.

        Returns:
            RestoreResult.  ``restored_records`` counts only collections that
            were written without error.
        """
        options = options or RestoreOptions()

        if options.validate_integrity:
            report = validate_snapshot(snapshot, self.schema, self.config.format_version)
            if not report.is_valid:
                logger.error(
                    "Snapshot validation failed, restore aborted",
                    extra={"errors": report.errors},
                )
                return RestoreResult(
                    success=False,
                    restored_records=0,
                    errors=list(report.errors),
                    dry_run=options.dry_run,
                )
            if report.warnings:
                logger.warning(
                    "Snapshot validation warnings",
                    extra={"warnings": report.warnings},
                )

        if options.create_safety_backup_first and not options.dry_run:
            await self._safety_backup(options.scope_key, cancel_event)

        if options.dry_run:
            logger.info(
                "Dry run - simulating restore",
                extra={"total_records": snapshot.metadata.total_records},
            )
            return RestoreResult(
                success=True,
                restored_records=snapshot.metadata.total_records,
                errors=[],
                dry_run=True,
            )

        return await self._replay(snapshot, options, cancel_event)

    async def _safety_backup(
        self,
        scope_key: str | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Snapshot current state before writing.  Failure does not block."""
        logger.info("Creating safety snapshot before restore", extra={"scope_key": scope_key})
        try:
            await self.builder.build(
                scope_key=scope_key,
                reason=PRE_RESTORE_REASON,
                cancel_event=cancel_event,
            )
        except SnapshotError as e:
            logger.warning(f"Safety snapshot failed, continuing restore: {e}")

    async def _replay(
        self,
        snapshot: Snapshot,
        options: RestoreOptions,
        cancel_event: asyncio.Event | None,
    ) -> RestoreResult:
        errors: list[str] = []
        written: dict[str, int] = {}
        restored_records = 0

        logger.info(
            "Starting snapshot restore",
            extra={
                "snapshot_created_at": snapshot.created_at,
                "total_records": snapshot.metadata.total_records,
            },
        )

        collections = self.schema.collections
        for index, coll in enumerate(collections):
            if cancel_event is not None and cancel_event.is_set():
                errors.append(f"Restore cancelled before {coll.name}")
                logger.warning(
                    "Restore cancelled",
                    extra={"restored_records": restored_records, "next_collection": coll.name},
                )
                return RestoreResult(
                    success=False,
                    restored_records=restored_records,
                    errors=errors,
                    cancelled=True,
                    collections=written,
                )

            records = snapshot.collections.get(coll.name, [])
            if isinstance(records, list) and not records:
                continue

            try:
                await self._write_collection(coll, records, cancel_event)
            except SnapshotCancelledError:
                errors.append(f"Restore cancelled during {coll.name}")
                logger.warning(
                    "Restore cancelled mid-collection",
                    extra={"restored_records": restored_records, "collection": coll.name},
                )
                return RestoreResult(
                    success=False,
                    restored_records=restored_records,
                    errors=errors,
                    cancelled=True,
                    collections=written,
                )
            except Exception as e:
                message = f"{coll.name.capitalize()} restore failed: {e}"
                errors.append(message)
                sample = records[0] if isinstance(records, list) else records
                logger.error(
                    message,
                    extra={"collection": coll.name, "sample_record": mask_sensitive(sample)},
                )
                if options.failure_policy == "abort_on_failure":
                    logger.warning(
                        "Restore aborted after failed collection",
                        extra={"skipped": [c.name for c in collections[index + 1:]]},
                    )
                    break
                continue

            written[coll.name] = len(records)
            restored_records += len(records)

        success = len(errors) == 0
        if success:
            logger.info(
                "Snapshot restore completed",
                extra={"restored_records": restored_records},
            )
        else:
            logger.error(
                "Snapshot restore completed with errors",
                extra={"errors": errors, "restored_records": restored_records},
            )

        return RestoreResult(
            success=success,
            restored_records=restored_records,
            errors=errors,
            collections=written,
        )

    async def _write_collection(
        self,
        coll: CollectionDef,
        records: object,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Upsert one collection in batches, checking ``cancel_event`` before each.

        Raises:
            SnapshotCancelledError: ``cancel_event`` was set; earlier batches
                stay written.
            TypeError: If the collection data is not a list.
            Exception: Any gateway failure; earlier batches stay written.
        """
        if not isinstance(records, list):
            raise TypeError("collection data is not a list")

        batch_size = self.config.restore_batch_size
        for start in range(0, len(records), batch_size):
            if cancel_event is not None and cancel_event.is_set():
                raise SnapshotCancelledError(f"Restore cancelled during {coll.name}")
            batch = records[start:start + batch_size]
            await asyncio.wait_for(
                self.gateway.upsert(coll.name, batch, on_conflict=coll.pk),
                timeout=self.config.gateway_timeout_seconds,
            )
