"""Integrity digest over snapshot collections."""

import hashlib
import json
from typing import Any

DIGEST_ALGORITHM = "sha256"


def canonical_json(collections: dict[str, Any]) -> str:
    """Serialize collections deterministically.

    Keys are sorted at every level so the mapping order of collections and
    fields does not matter; record order within a collection does.
    """
    return json.dumps(collections, sort_keys=True, separators=(",", ":"), default=str)


def compute_digest(collections: dict[str, Any]) -> str:
    """Compute the integrity digest of ``collections``.

    Returns:
        Digest string in format ``'sha256:<hex>'``.

    Example:
        >>> compute_digest({"rooms": []})[:7]
        'sha256:'
    """
    hash_hex = hashlib.sha256(canonical_json(collections).encode("utf-8")).hexdigest()
    return f"{DIGEST_ALGORITHM}:{hash_hex}"
