"""Tests for snapshot integrity validation."""

import json

from innsync_backup.snapshot.artifact import parse_snapshot, serialize_snapshot
from innsync_backup.snapshot.models import (
    DEFAULT_SCHEMA,
    CollectionDef,
    ForeignKey,
    SnapshotSchema,
)
from innsync_backup.snapshot.validator import validate_snapshot

DIGEST_ERROR = "Data integrity check failed - snapshot may be corrupted or tampered"


def _empty_collections() -> dict[str, list]:
    return {name: [] for name in DEFAULT_SCHEMA.names}


def _two_properties_five_rooms() -> dict[str, list]:
    collections = _empty_collections()
    collections["properties"] = [{"id": "p1"}, {"id": "p2"}]
    collections["rooms"] = [
        {"id": "r1", "property_id": "p1"},
        {"id": "r2", "property_id": "p1"},
        {"id": "r3", "property_id": "p1"},
        {"id": "r4", "property_id": "p2"},
        {"id": "r5", "property_id": "p2"},
    ]
    return collections


# ============================================================================
# Test: Consistent snapshots
# ============================================================================


class TestValidSnapshot:
    """A freshly built, consistent snapshot passes cleanly."""

    def test_two_properties_five_rooms(self, make_snapshot) -> None:
        snapshot = make_snapshot(_two_properties_five_rooms())
        report = validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []
        assert report.dangling_references == {}

    def test_full_sample(self, make_snapshot, sample_tables) -> None:
        report = validate_snapshot(make_snapshot(sample_tables), DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.warnings == []

    def test_validation_is_pure(self, make_snapshot) -> None:
        snapshot = make_snapshot(_two_properties_five_rooms())
        before = snapshot.model_copy(deep=True)
        validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        assert snapshot == before


# ============================================================================
# Test: Errors
# ============================================================================


class TestValidationErrors:
    """Conditions that make a snapshot unusable for restore."""

    def test_one_changed_byte_fails_digest(self, make_snapshot) -> None:
        contents = serialize_snapshot(make_snapshot(_two_properties_five_rooms()))
        tampered = contents.replace('"r5"', '"r6"')
        assert tampered != contents

        report = validate_snapshot(parse_snapshot(tampered, DEFAULT_SCHEMA), DEFAULT_SCHEMA, "1.0")
        assert not report.is_valid
        assert report.errors == [DIGEST_ERROR]

    def test_missing_timestamp(self, make_snapshot) -> None:
        snapshot = make_snapshot(_empty_collections(), created_at=None)
        report = validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        assert not report.is_valid
        assert "Missing snapshot timestamp" in report.errors

    def test_missing_collection(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        del collections["guests"]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert not report.is_valid
        assert report.errors == ["Invalid or missing guests data"]

    def test_collection_not_a_list(self, make_snapshot) -> None:
        collections = _empty_collections()
        collections["payments"] = {"id": "pay1"}
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert "Invalid or missing payments data" in report.errors

    def test_multiple_errors_reported_together(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        del collections["payments"]
        snapshot = make_snapshot(collections, created_at=None)
        snapshot.metadata.integrity_digest = "sha256:0"
        report = validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        assert len(report.errors) == 3


# ============================================================================
# Test: Warnings
# ============================================================================


class TestValidationWarnings:
    """Advisory findings that never block a restore."""

    def test_version_mismatch(self, make_snapshot) -> None:
        snapshot = make_snapshot(_empty_collections(), format_version="0.9")
        report = validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.warnings == ["Snapshot version (0.9) differs from supported version (1.0)"]

    def test_total_records_mismatch(self, make_snapshot) -> None:
        snapshot = make_snapshot(_two_properties_five_rooms())
        snapshot.metadata.total_records = 99
        report = validate_snapshot(snapshot, DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.warnings == ["metadata.totalRecords (99) does not match record count (7)"]

    def test_non_object_records(self, make_snapshot) -> None:
        collections = _empty_collections()
        collections["properties"] = [{"id": "p1"}, "p2", 3]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == ["properties contains 2 non-object records"]

    def test_records_missing_primary_key(self, make_snapshot) -> None:
        collections = _empty_collections()
        collections["properties"] = [{"id": "p1"}, {"name": "No Id"}]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.warnings == ["properties has 1 records missing 'id'"]

    def test_rooms_without_ids_and_one_dangling(self, make_snapshot) -> None:
        collections = _empty_collections()
        collections["properties"] = [{"id": "p1"}]
        collections["rooms"] = [{"property_id": "p1"}, {"property_id": "missing"}]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == [
            "rooms has 2 records missing 'id'",
            "rooms 'unknown' references non-existent properties 'missing' (property_id)",
        ]
        assert report.dangling_references == {"rooms.property_id": 1}

    def test_one_dangling_room(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        collections["rooms"].append({"id": "r9", "property_id": "p404"})
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert report.warnings == [
            "rooms 'r9' references non-existent properties 'p404' (property_id)"
        ]
        assert report.dangling_references == {"rooms.property_id": 1}

    def test_one_warning_per_dangling_record(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        collections["payments"] = [
            {"id": "pay1", "reservation_id": "gone1"},
            {"id": "pay2", "reservation_id": "gone2"},
            {"id": "pay3", "reservation_id": None},
        ]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.is_valid
        assert len(report.warnings) == 2
        assert report.dangling_references == {"payments.reservation_id": 2}

    def test_reservation_checks_every_reference(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        collections["reservations"] = [
            {"id": "res1", "property_id": "p1", "room_id": "r404", "guest_id": "g404"},
        ]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.dangling_references == {
            "reservations.room_id": 1,
            "reservations.guest_id": 1,
        }

    def test_missing_parent_collection_skips_reference_check(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        del collections["properties"]
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.errors == ["Invalid or missing properties data"]
        assert report.dangling_references == {}

    def test_unhashable_foreign_key(self, make_snapshot) -> None:
        collections = _two_properties_five_rooms()
        collections["rooms"].append({"id": "r9", "property_id": {"nested": True}})
        report = validate_snapshot(make_snapshot(collections), DEFAULT_SCHEMA, "1.0")
        assert report.dangling_references == {"rooms.property_id": 1}


# ============================================================================
# Test: Custom schemas and formatting
# ============================================================================


class TestCustomSchema:
    def test_custom_primary_key(self, make_snapshot) -> None:
        schema = SnapshotSchema(
            collections=[
                CollectionDef(name="hotels", pk="code"),
                CollectionDef(
                    name="suites",
                    pk="code",
                    parent=ForeignKey(collection="hotels", field="hotel_code"),
                ),
            ]
        )
        snapshot = make_snapshot({
            "hotels": [{"code": "H1"}],
            "suites": [{"code": "S1", "hotel_code": "H1"}, {"code": "S2", "hotel_code": "H2"}],
        })
        report = validate_snapshot(snapshot, schema, "1.0")
        assert report.is_valid
        assert report.dangling_references == {"suites.hotel_code": 1}

    def test_format_report(self, make_snapshot) -> None:
        collections = _empty_collections()
        del collections["rooms"]
        report = validate_snapshot(make_snapshot(collections, format_version="2.0"), DEFAULT_SCHEMA, "1.0")
        text = report.format_report()
        assert text.startswith("Snapshot invalid")
        assert "Errors (1):" in text
        assert "Warnings (1):" in text
        json.dumps(report.model_dump())
