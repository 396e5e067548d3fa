"""Entity gateway adapters package.

Provides the ``EntityGateway`` Protocol and concrete async adapter
implementations for PostgreSQL and (optionally) Supabase.

``AsyncSupabaseAdapter`` is only available when the ``supabase`` extra
is installed.  A missing ``supabase`` dependency does not prevent
importing the rest of the package.

Usage:
    from innsync_backup.adapters import EntityGateway, AsyncPostgresAdapter

    # With supabase extra installed:
    from innsync_backup.adapters import AsyncSupabaseAdapter
"""

from innsync_backup.adapters.base import EntityGateway
from innsync_backup.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "EntityGateway",
    "AsyncPostgresAdapter",
]

try:
    from innsync_backup.adapters.supabase import AsyncSupabaseAdapter

    __all__.append("AsyncSupabaseAdapter")
except ImportError:
    # supabase extra not installed -- AsyncSupabaseAdapter unavailable
    pass
