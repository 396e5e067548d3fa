"""Entity gateway protocol definition.

Defines the ``EntityGateway`` Protocol that snapshot and restore code uses
to reach the operational store.  All methods are ``async def``.

Usage:
    from innsync_backup.adapters.base import EntityGateway

    async def copy_rooms(gateway: EntityGateway) -> None:
        rows = await gateway.select("rooms", "*", filters={"property_id": "p1"})
        await gateway.upsert("rooms", rows, on_conflict="id")
        await gateway.close()
"""

from typing import Any, Protocol


class EntityGateway(Protocol):
    """Fetch/upsert interface over named entity collections.

    The snapshot subsystem only ever reads collections and writes them back
    with insert-or-update semantics; it never deletes.
    """

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from a collection.

        Args:
            table: Collection (table) name.
            columns: Comma-separated column names, ``"*"`` for all.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await gateway.select(
                "rooms",
                "*",
                filters={"property_id": "p1"},
            )
        """
        ...

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[dict]:
        """Insert rows, updating any row whose key already exists.

        Args:
            table: Collection (table) name.
            rows: Row dicts to write.  All rows must share the same keys.
            on_conflict: Primary key column used to detect existing rows.

        Returns:
            The written rows as stored.

        Raises:
            Exception: On constraint violation or schema mismatch.  The
                whole call fails; no partial batch is reported.
        """
        ...

    async def close(self) -> None:
        """Close the connection and release resources."""
        ...
