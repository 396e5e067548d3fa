"""innsync-backup: snapshot, integrity validation, and restore for InnSync data.

Exports point-in-time snapshots of the property-management collections,
validates their structure, digest and references, and replays them back
into the store in dependency order.

Usage:
    from innsync_backup import SnapshotService, RestoreOptions, load_backup_config
    from innsync_backup import AsyncPostgresAdapter, EntityGateway, create_service
"""

__version__ = "0.1.0"

# Adapters
from innsync_backup.adapters.base import EntityGateway
from innsync_backup.adapters.postgres import AsyncPostgresAdapter

# Config
from innsync_backup.config.loader import load_backup_config
from innsync_backup.config.models import BackupConfig, GatewayProfile

# Factory
from innsync_backup.factory import (
    ProfileNotFoundError,
    create_service,
    get_gateway,
    resolve_profile,
    resolve_url,
)

# Snapshot
from innsync_backup.snapshot import (
    DEFAULT_SCHEMA,
    CollectionDef,
    ForeignKey,
    HistoryEntry,
    RestoreOptions,
    RestoreResult,
    Snapshot,
    SnapshotError,
    SnapshotSchema,
    SnapshotService,
    ValidationReport,
)

__all__ = [
    # Adapters
    "EntityGateway",
    "AsyncPostgresAdapter",
    # Config
    "load_backup_config",
    "BackupConfig",
    "GatewayProfile",
    # Factory
    "create_service",
    "get_gateway",
    "resolve_profile",
    "resolve_url",
    "ProfileNotFoundError",
    # Snapshot
    "SnapshotService",
    "SnapshotSchema",
    "CollectionDef",
    "ForeignKey",
    "DEFAULT_SCHEMA",
    "Snapshot",
    "RestoreOptions",
    "RestoreResult",
    "ValidationReport",
    "HistoryEntry",
    "SnapshotError",
]

# Optional: AsyncSupabaseAdapter (only available with supabase extra)
try:
    from innsync_backup.adapters.supabase import AsyncSupabaseAdapter

    __all__.append("AsyncSupabaseAdapter")
except ImportError:
    # supabase extra not installed -- AsyncSupabaseAdapter unavailable
    pass
