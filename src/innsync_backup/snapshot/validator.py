"""Snapshot integrity validation.

``validate_snapshot`` is sync -- it only inspects an in-memory snapshot with
no gateway I/O.  Errors make a snapshot unusable for restore; warnings are
advisory and must be surfaced to the caller.

Checks, in order:

1. Format version differs from the supported version (warning).
2. Missing creation timestamp (error).
3. Every schema collection present as a list (error per collection).
   Non-object records and records without a primary key are warnings; the
   restore reports them when the gateway rejects the collection.
4. Integrity digest recomputed from ``collections`` (error on mismatch).
5. ``metadata.totalRecords`` matches the record count (warning).
6. Foreign keys resolve within the snapshot (one warning per dangling record).
"""

import json
from typing import Any

from innsync_backup.snapshot.integrity import compute_digest
from innsync_backup.snapshot.models import Snapshot, SnapshotSchema, ValidationReport


def validate_snapshot(
    snapshot: Snapshot,
    schema: SnapshotSchema,
    supported_version: str,
) -> ValidationReport:
    """Validate snapshot structure, digest, and referential soundness.

    Args:
        snapshot: Snapshot built locally or parsed from a file.
        schema: Snapshot schema describing collections and FK relationships.
        supported_version: Format version this build writes.

    Returns:
        ValidationReport with ``is_valid`` true when there are no errors.

    Example:
        report = validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        if not report.is_valid:
            raise ValueError(report.format_report())
    """
    errors: list[str] = []
    warnings: list[str] = []

    if snapshot.format_version != supported_version:
        warnings.append(
            f"Snapshot version ({snapshot.format_version}) differs from "
            f"supported version ({supported_version})"
        )

    if not snapshot.created_at:
        errors.append("Missing snapshot timestamp")

    errors.extend(_check_structure(snapshot, schema, warnings))

    if compute_digest(snapshot.collections) != snapshot.metadata.integrity_digest:
        errors.append("Data integrity check failed - snapshot may be corrupted or tampered")

    actual_total = snapshot.total_records()
    if snapshot.metadata.total_records != actual_total:
        warnings.append(
            f"metadata.totalRecords ({snapshot.metadata.total_records}) does not "
            f"match record count ({actual_total})"
        )

    dangling = _check_references(snapshot, schema, warnings)

    return ValidationReport(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        dangling_references=dangling,
    )


def _check_structure(
    snapshot: Snapshot,
    schema: SnapshotSchema,
    warnings: list[str],
) -> list[str]:
    """Return one error per missing or non-list collection.

    Malformed records inside a list are appended to ``warnings``.
    """
    errors: list[str] = []
    for coll in schema.collections:
        records = snapshot.collections.get(coll.name)
        if not isinstance(records, list):
            errors.append(f"Invalid or missing {coll.name} data")
            continue

        non_objects = sum(1 for r in records if not isinstance(r, dict))
        if non_objects:
            warnings.append(f"{coll.name} contains {non_objects} non-object records")

        missing_pk = sum(1 for r in records if isinstance(r, dict) and r.get(coll.pk) is None)
        if missing_pk:
            warnings.append(f"{coll.name} has {missing_pk} records missing '{coll.pk}'")
    return errors


def _as_key(value: Any) -> Any:
    """Make JSON values usable as set members."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return value


def _check_references(
    snapshot: Snapshot,
    schema: SnapshotSchema,
    warnings: list[str],
) -> dict[str, int]:
    """Append a warning per dangling FK and return counts per relationship."""
    counts: dict[str, int] = {}
    parent_keys: dict[str, set] = {}

    for coll in schema.collections:
        records = snapshot.collections.get(coll.name)
        if isinstance(records, list):
            parent_keys[coll.name] = {
                _as_key(r.get(coll.pk)) for r in records if isinstance(r, dict)
            }

        if not isinstance(records, list):
            continue

        for ref in coll.relationships:
            # Parent collection itself missing: already an error
            if ref.collection not in parent_keys:
                continue
            known = parent_keys[ref.collection]
            for record in records:
                if not isinstance(record, dict):
                    continue
                fk_value = record.get(ref.field)
                if fk_value is None or _as_key(fk_value) in known:
                    continue
                label = f"{coll.name}.{ref.field}"
                counts[label] = counts.get(label, 0) + 1
                warnings.append(
                    f"{coll.name} '{record.get(coll.pk, 'unknown')}' references "
                    f"non-existent {ref.collection} '{fk_value}' ({ref.field})"
                )

    return counts
