"""Shared fixtures: an in-memory entity gateway and sample property data."""

from datetime import datetime, timezone
from typing import Any

import pytest

from innsync_backup.snapshot.integrity import compute_digest
from innsync_backup.snapshot.models import Snapshot, SnapshotMetadata

NOW = datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)


class FakeGateway:
    """In-memory ``EntityGateway`` that records every call.

    Args:
        tables: Initial rows per table.
        fail_select: Tables whose ``select`` raises ``ConnectionError``.
        fail_upsert: Tables whose ``upsert`` raises ``RuntimeError``.
    """

    def __init__(
        self,
        tables: dict[str, list[dict]] | None = None,
        fail_select: set[str] | None = None,
        fail_upsert: set[str] | None = None,
    ) -> None:
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.fail_select = set(fail_select or ())
        self.fail_upsert = set(fail_upsert or ())
        self.select_calls: list[tuple[str, dict | None]] = []
        self.upsert_calls: list[tuple[str, int, str]] = []
        self.closed = False

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        self.select_calls.append((table, filters))
        if table in self.fail_select:
            raise ConnectionError(f"{table} unavailable")
        rows = self.tables.get(table, [])
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        return [dict(r) for r in rows]

    async def upsert(self, table: str, rows: list[dict], on_conflict: str = "id") -> list[dict]:
        self.upsert_calls.append((table, len(rows), on_conflict))
        if table in self.fail_upsert:
            raise RuntimeError("constraint violation")
        existing = {r[on_conflict]: r for r in self.tables.get(table, [])}
        for row in rows:
            existing[row[on_conflict]] = dict(row)
        self.tables[table] = list(existing.values())
        return [dict(r) for r in rows]

    async def close(self) -> None:
        self.closed = True


def _sample_tables() -> dict[str, list[dict]]:
    return {
        "properties": [
            {"id": "p1", "name": "Harbor Inn"},
            {"id": "p2", "name": "Hill Lodge"},
        ],
        "rooms": [
            {"id": "r1", "property_id": "p1", "number": "101"},
            {"id": "r2", "property_id": "p1", "number": "102"},
            {"id": "r3", "property_id": "p1", "number": "201"},
            {"id": "r4", "property_id": "p2", "number": "1A"},
            {"id": "r5", "property_id": "p2", "number": "1B"},
        ],
        "guests": [
            {
                "id": "g1",
                "property_id": "p1",
                "full_name": "Dewi Lestari",
                "id_number": "3174012345670001",
                "password_hash": "$2b$12$abcdefghijk",
            },
            {"id": "g2", "property_id": "p2", "full_name": "Ana Souza", "id_number": None},
        ],
        "reservations": [
            {"id": "res1", "property_id": "p1", "room_id": "r1", "guest_id": "g1"},
            {"id": "res2", "property_id": "p2", "room_id": "r4", "guest_id": "g2"},
        ],
        "payments": [
            {"id": "pay1", "reservation_id": "res1", "amount": "120.00"},
            {"id": "pay2", "reservation_id": "res2", "amount": "95.50"},
        ],
    }


@pytest.fixture
def sample_tables() -> dict[str, list[dict]]:
    """Two properties with rooms, guests, reservations, and payments (11+ rows)."""
    return _sample_tables()


@pytest.fixture
def make_gateway():
    """Factory for ``FakeGateway`` instances."""
    return FakeGateway


@pytest.fixture
def gateway(sample_tables) -> FakeGateway:
    return FakeGateway(sample_tables)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_snapshot():
    """Factory for consistent snapshots (correct digest and totals)."""

    def _make(
        collections: dict[str, Any],
        created_at: str | None = NOW.isoformat(),
        format_version: str = "1.0",
        reason: str = "manual",
    ) -> Snapshot:
        total = sum(len(v) for v in collections.values() if isinstance(v, list))
        return Snapshot(
            created_at=created_at,
            format_version=format_version,
            collections=collections,
            metadata=SnapshotMetadata(
                total_records=total,
                integrity_digest=compute_digest(collections),
                reason=reason,
            ),
        )

    return _make
