"""Snapshot document format: JSON serialization, parsing, and file naming.

Document layout::

    {
      "createdAt": "2026-01-15T08:30:00+00:00",
      "formatVersion": "1.0",
      "properties": [...],
      "rooms": [...],
      ...
      "metadata": {
        "totalRecords": 42,
        "dataIntegrity": "sha256:...",
        "exportedBy": "system",
        "exportReason": "manual"
      }
    }

Documents written by the dashboard before the rename (``timestamp`` and
``version`` instead of ``createdAt`` and ``formatVersion``) are accepted.
"""

import json
from datetime import date
from typing import Any

from pydantic import ValidationError

from innsync_backup.snapshot.errors import SnapshotParseError
from innsync_backup.snapshot.models import Snapshot, SnapshotMetadata, SnapshotSchema


def snapshot_to_document(snapshot: Snapshot) -> dict[str, Any]:
    """Flatten a Snapshot into its exported document form."""
    document: dict[str, Any] = {
        "createdAt": snapshot.created_at,
        "formatVersion": snapshot.format_version,
    }
    for name, records in snapshot.collections.items():
        document[name] = records
    document["metadata"] = snapshot.metadata.model_dump(by_alias=True)
    return document


def serialize_snapshot(snapshot: Snapshot, indent: int | None = None) -> str:
    """Serialize a Snapshot to JSON text."""
    return json.dumps(snapshot_to_document(snapshot), indent=indent, default=str)


def parse_snapshot(contents: str | bytes, schema: SnapshotSchema) -> Snapshot:
    """Parse a snapshot document.

    Only collections named in ``schema`` are read.  Collections missing from
    the document are left out of ``Snapshot.collections`` so validation can
    report them.

    Raises:
        SnapshotParseError: If the document is not valid JSON, is not an
            object, or has no usable ``metadata``.
    """
    try:
        document = json.loads(contents)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SnapshotParseError(f"Invalid JSON: {e}") from e

    if not isinstance(document, dict):
        raise SnapshotParseError("Snapshot document must be a JSON object")

    raw_metadata = document.get("metadata")
    if not isinstance(raw_metadata, dict):
        raise SnapshotParseError("Missing metadata object")

    try:
        metadata = SnapshotMetadata.model_validate(raw_metadata)
    except ValidationError as e:
        raise SnapshotParseError(f"Invalid metadata: {e}") from e

    created_at = document.get("createdAt", document.get("timestamp"))
    format_version = document.get("formatVersion", document.get("version", ""))

    return Snapshot(
        created_at=str(created_at) if created_at else None,
        format_version=str(format_version),
        collections={name: document[name] for name in schema.names if name in document},
        metadata=metadata,
    )


def snapshot_filename(product: str, scope_key: str | None, day: date) -> str:
    """Build the download file name for a snapshot.

    Example:
        >>> snapshot_filename("innsync", None, date(2026, 1, 15))
        'innsync_backup_all_properties_2026-01-15.json'
        >>> snapshot_filename("innsync", "p1", date(2026, 1, 15))
        'innsync_backup_property_p1_2026-01-15.json'
    """
    scope = f"property_{scope_key}" if scope_key else "all_properties"
    return f"{product}_backup_{scope}_{day.isoformat()}.json"
