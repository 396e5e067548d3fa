"""Snapshot schema and value models.

Callers declare their collections, scope fields and FK relationships in a
``SnapshotSchema``; builder, validator and restore are all driven by it.
The order of ``SnapshotSchema.collections`` is the dependency order used
during restore (parents first).

Usage:
    from innsync_backup.snapshot.models import CollectionDef, ForeignKey, SnapshotSchema

    schema = SnapshotSchema(collections=[
        CollectionDef(name="hotels", scope_field="id"),
        CollectionDef(name="suites", scope_field="hotel_id",
                      parent=ForeignKey(collection="hotels", field="hotel_id")),
    ])
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Schema Models
# ============================================================================


class ForeignKey(BaseModel):
    """Foreign key reference to a parent collection."""

    collection: str     # parent collection name
    field: str          # FK field in the child record


class CollectionDef(BaseModel):
    """Definition of one entity collection in a snapshot."""

    name: str
    pk: str = "id"
    scope_field: str | None = None      # field compared to the scope key at fetch time
    parent: ForeignKey | None = None    # owning parent (dependency tier)
    refs: list[ForeignKey] = Field(default_factory=list)  # other references

    @property
    def relationships(self) -> list[ForeignKey]:
        """All outgoing references, parent first."""
        if self.parent is None:
            return list(self.refs)
        return [self.parent, *self.refs]


class SnapshotSchema(BaseModel):
    """Declarative snapshot schema. Collections ordered by dependency (parents first)."""

    collections: list[CollectionDef]

    @model_validator(mode="after")
    def _check_dependency_order(self) -> "SnapshotSchema":
        seen: set[str] = set()
        for coll in self.collections:
            if coll.name in seen:
                raise ValueError(f"Duplicate collection '{coll.name}'")
            for ref in coll.relationships:
                if ref.collection not in seen:
                    raise ValueError(
                        f"Collection '{coll.name}' references '{ref.collection}', "
                        f"which must be declared before it"
                    )
            seen.add(coll.name)
        return self

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.collections]

    def get(self, name: str) -> CollectionDef | None:
        """Find a CollectionDef by name."""
        for coll in self.collections:
            if coll.name == name:
                return coll
        return None


DEFAULT_SCHEMA = SnapshotSchema(
    collections=[
        CollectionDef(name="properties", scope_field="id"),
        CollectionDef(
            name="rooms",
            scope_field="property_id",
            parent=ForeignKey(collection="properties", field="property_id"),
        ),
        CollectionDef(
            name="guests",
            scope_field="property_id",
            parent=ForeignKey(collection="properties", field="property_id"),
        ),
        CollectionDef(
            name="reservations",
            scope_field="property_id",
            parent=ForeignKey(collection="properties", field="property_id"),
            refs=[
                ForeignKey(collection="rooms", field="room_id"),
                ForeignKey(collection="guests", field="guest_id"),
            ],
        ),
        # Payments carry no property_id; they are scoped through reservations.
        CollectionDef(
            name="payments",
            parent=ForeignKey(collection="reservations", field="reservation_id"),
        ),
    ]
)


# ============================================================================
# Snapshot
# ============================================================================


class SnapshotMetadata(BaseModel):
    """Record count, digest, and provenance of a snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    total_records: int = Field(alias="totalRecords")
    integrity_digest: str = Field(alias="dataIntegrity")
    produced_by: str = Field(default="system", alias="exportedBy")
    reason: str = Field(default="manual", alias="exportReason")


class Snapshot(BaseModel):
    """A point-in-time export of entity collections.

    ``collections`` maps collection name to its records in schema order.
    Values are kept as loaded so that the validator can report collections
    that are missing or not lists.
    """

    created_at: str | None
    format_version: str
    collections: dict[str, Any]
    metadata: SnapshotMetadata

    def total_records(self) -> int:
        """Sum of record counts across list-valued collections."""
        return sum(len(v) for v in self.collections.values() if isinstance(v, list))


# ============================================================================
# Restore
# ============================================================================


FailurePolicy = Literal["best_effort", "abort_on_failure"]


class RestoreOptions(BaseModel):
    """Per-invocation restore controls. Never persisted."""

    validate_integrity: bool = True
    create_safety_backup_first: bool = True
    dry_run: bool = False
    scope_key: str | None = None
    failure_policy: FailurePolicy = "best_effort"


class RestoreResult(BaseModel):
    """Outcome of a restore.

    ``success`` is true only when ``errors`` is empty and the restore was
    not cancelled.  Callers must inspect ``errors`` even when
    ``restored_records > 0``.
    """

    success: bool
    restored_records: int = 0
    errors: list[str] = Field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False
    collections: dict[str, int] = Field(default_factory=dict)  # records written per collection

    @model_validator(mode="after")
    def _check_success(self) -> "RestoreResult":
        if self.success and (self.errors or self.cancelled):
            raise ValueError("A restore with errors or cancellation cannot be successful")
        return self


# ============================================================================
# Validation
# ============================================================================


class ValidationReport(BaseModel):
    """Result of snapshot validation. Warnings never block a restore."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    dangling_references: dict[str, int] = Field(default_factory=dict)  # "rooms.property_id" -> count

    def format_report(self) -> str:
        """Format the report as human-readable text."""
        lines = ["Snapshot valid" if self.is_valid else "Snapshot invalid"]
        if self.errors:
            lines.append(f"\n  Errors ({len(self.errors)}):")
            lines.extend(f"    - {e}" for e in self.errors)
        if self.warnings:
            lines.append(f"\n  Warnings ({len(self.warnings)}):")
            lines.extend(f"    - {w}" for w in self.warnings)
        return "\n".join(lines)


# ============================================================================
# History
# ============================================================================


class HistoryEntry(BaseModel):
    """One snapshot event in the history ledger."""

    timestamp: datetime
    scope_key: str | None = None
    reason: str
    record_count: int
