"""Tests for the integrity digest."""

import hashlib

from innsync_backup.snapshot.integrity import canonical_json, compute_digest


class TestComputeDigest:
    """Verify digest format, determinism, and sensitivity."""

    def test_format(self) -> None:
        digest = compute_digest({"rooms": [{"id": "r1"}]})
        algorithm, _, hex_part = digest.partition(":")
        assert algorithm == "sha256"
        assert len(hex_part) == 64
        int(hex_part, 16)

    def test_matches_sha256_of_canonical_json(self) -> None:
        collections = {"properties": [{"id": "p1", "name": "Harbor Inn"}]}
        expected = hashlib.sha256(canonical_json(collections).encode("utf-8")).hexdigest()
        assert compute_digest(collections) == f"sha256:{expected}"

    def test_key_order_independent(self) -> None:
        a = {"properties": [{"id": "p1", "name": "A"}], "rooms": [{"id": "r1", "property_id": "p1"}]}
        b = {"rooms": [{"property_id": "p1", "id": "r1"}], "properties": [{"name": "A", "id": "p1"}]}
        assert compute_digest(a) == compute_digest(b)

    def test_record_order_matters(self) -> None:
        a = {"rooms": [{"id": "r1"}, {"id": "r2"}]}
        b = {"rooms": [{"id": "r2"}, {"id": "r1"}]}
        assert compute_digest(a) != compute_digest(b)

    def test_any_field_change_changes_digest(self) -> None:
        original = {"payments": [{"id": "pay1", "amount": "120.00"}]}
        tampered = {"payments": [{"id": "pay1", "amount": "120.01"}]}
        assert compute_digest(original) != compute_digest(tampered)

    def test_non_json_values_stringified(self) -> None:
        from datetime import date

        collections = {"reservations": [{"id": "res1", "check_in": date(2026, 2, 1)}]}
        same_as_text = {"reservations": [{"id": "res1", "check_in": "2026-02-01"}]}
        assert compute_digest(collections) == compute_digest(same_as_text)

    def test_canonical_json_compact(self) -> None:
        assert canonical_json({"b": [1], "a": {"y": 1, "x": 2}}) == '{"a":{"x":2,"y":1},"b":[1]}'
