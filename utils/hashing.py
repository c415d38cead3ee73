# utils/hashing.py
import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serializes metadata with sorted keys and compact separators."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def metadata_hash(value: Any) -> str:
    """Hex SHA-256 digest of the canonical serialization of a metadata payload."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
