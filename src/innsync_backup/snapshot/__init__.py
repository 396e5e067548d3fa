"""Snapshot, integrity validation, and restore.

The collections, scope fields and FK relationships are declared in a
``SnapshotSchema``; ``DEFAULT_SCHEMA`` covers properties, rooms, guests,
reservations and payments.

Usage:
    from innsync_backup.snapshot import SnapshotService, RestoreOptions
    from innsync_backup.snapshot import parse_snapshot, validate_snapshot
"""

from innsync_backup.snapshot.artifact import (
    parse_snapshot,
    serialize_snapshot,
    snapshot_filename,
    snapshot_to_document,
)
from innsync_backup.snapshot.builder import SnapshotBuilder
from innsync_backup.snapshot.errors import (
    GatewayFetchError,
    SnapshotBuildError,
    SnapshotCancelledError,
    SnapshotError,
    SnapshotParseError,
    SnapshotSizeExceededError,
)
from innsync_backup.snapshot.history import (
    HistoryLedger,
    HistoryStore,
    InMemoryHistoryStore,
    JsonFileHistoryStore,
)
from innsync_backup.snapshot.integrity import compute_digest
from innsync_backup.snapshot.models import (
    DEFAULT_SCHEMA,
    CollectionDef,
    ForeignKey,
    HistoryEntry,
    RestoreOptions,
    RestoreResult,
    Snapshot,
    SnapshotMetadata,
    SnapshotSchema,
    ValidationReport,
)
from innsync_backup.snapshot.restore import RestoreOrchestrator
from innsync_backup.snapshot.sanitizer import mask_sensitive, sanitize_record
from innsync_backup.snapshot.scheduler import ScheduledSnapshotTask
from innsync_backup.snapshot.service import SnapshotService
from innsync_backup.snapshot.validator import validate_snapshot

__all__ = [
    # Schema and models
    "DEFAULT_SCHEMA",
    "CollectionDef",
    "ForeignKey",
    "SnapshotSchema",
    "Snapshot",
    "SnapshotMetadata",
    "RestoreOptions",
    "RestoreResult",
    "ValidationReport",
    "HistoryEntry",
    # Components
    "SnapshotBuilder",
    "RestoreOrchestrator",
    "HistoryLedger",
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonFileHistoryStore",
    "ScheduledSnapshotTask",
    "SnapshotService",
    # Functions
    "compute_digest",
    "validate_snapshot",
    "sanitize_record",
    "mask_sensitive",
    "parse_snapshot",
    "serialize_snapshot",
    "snapshot_filename",
    "snapshot_to_document",
    # Errors
    "SnapshotError",
    "SnapshotBuildError",
    "SnapshotSizeExceededError",
    "GatewayFetchError",
    "SnapshotCancelledError",
    "SnapshotParseError",
]
