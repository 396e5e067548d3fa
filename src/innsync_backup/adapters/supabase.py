"""Async Supabase entity gateway.

Provides ``AsyncSupabaseAdapter``, an async implementation of the
``EntityGateway`` protocol using the supabase-py async client.

The client is initialized lazily on first use with an ``asyncio.Lock``
to ensure exactly one client is created.

Usage:
    from innsync_backup.adapters.supabase import AsyncSupabaseAdapter

    adapter = AsyncSupabaseAdapter(
        url="https://xyzproject.supabase.co",
        key="eyJ...",
    )

    rooms = await adapter.select("rooms", "*")
    await adapter.close()
"""

import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client


class AsyncSupabaseAdapter:
    """Async Supabase implementation of the ``EntityGateway`` protocol.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service key for restores).
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        """Get or create the async Supabase client."""
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table using the Supabase query builder."""
        client = await self._get_client()
        query = client.table(table).select(columns)

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by)

        result = await query.execute()
        return result.data

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[dict]:
        """Insert-or-update rows in a single request keyed by ``on_conflict``."""
        if not rows:
            return []
        client = await self._get_client()
        result = await client.table(table).upsert(rows, on_conflict=on_conflict).execute()
        return result.data

    async def close(self) -> None:
        """Close the Supabase async client.

        If the client was never initialized this is a no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
