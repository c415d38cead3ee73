import hashlib

from utils.hashing import canonical_json, metadata_hash


def test_hash_is_deterministic():
    metadata = {"moisture": 12, "collector": {"name": "R. Iyer", "gps": [12.97, 77.59]}}
    assert metadata_hash(metadata) == metadata_hash(metadata)


def test_key_order_does_not_change_hash():
    a = {"moisture": 12, "ash": {"total": 4.1, "acid_insoluble": 0.6}}
    b = {"ash": {"acid_insoluble": 0.6, "total": 4.1}, "moisture": 12}
    assert canonical_json(a) == canonical_json(b)
    assert metadata_hash(a) == metadata_hash(b)


def test_distinct_metadata_hash_differently():
    assert metadata_hash({"moisture": 12}) != metadata_hash({"moisture": 13})
    assert metadata_hash({}) != metadata_hash(None)


def test_compact_serialization_matches_plain_sha256():
    assert canonical_json({"moisture": 12}) == '{"moisture":12}'
    assert metadata_hash({"moisture": 12}) == hashlib.sha256(b'{"moisture":12}').hexdigest()


def test_non_ascii_is_kept_verbatim():
    assert canonical_json({"herb": "अश्वगंधा"}) == '{"herb":"अश्वगंधा"}'
