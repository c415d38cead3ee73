from dataclasses import replace
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from bson.errors import InvalidDocument
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from herbchain.config import load_settings
from herbchain.database import StageEventStore, get_database, stage_event_helper
from herbchain.errors import UpstreamFailure


class AsyncCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._docs:
            raise StopAsyncIteration
        return self._docs.pop(0)


def test_stage_event_helper_stringifies_id():
    oid = ObjectId()
    row = stage_event_helper({"_id": oid, "batch_id": "42", "event_type": 1, "event_hash": "ab"})
    assert row["id"] == str(oid)
    assert row["event_data"] == {}


@pytest.mark.asyncio
class TestStageEventStore:

    async def test_insert_returns_stored_row(self):
        collection = MagicMock()
        oid = ObjectId()
        collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=oid))

        row = await StageEventStore(collection).insert("42", 0, {"moisture": 12}, "ab" * 32)

        stored = collection.insert_one.await_args.args[0]
        assert stored["batch_id"] == "42"
        assert stored["event_type"] == 0
        assert isinstance(stored["created_at"], datetime)
        assert row["id"] == str(oid)
        assert row["event_hash"] == "ab" * 32

    async def test_insert_error(self):
        collection = MagicMock()
        collection.insert_one = AsyncMock(side_effect=PyMongoError("not primary"))
        with pytest.raises(UpstreamFailure, match="not primary"):
            await StageEventStore(collection).insert("42", 0, {}, "ab")

    async def test_list_for_batch_sorted_by_creation(self):
        docs = [
            {"_id": ObjectId(), "batch_id": "42", "event_type": 0, "event_data": {}, "event_hash": "a"},
            {"_id": ObjectId(), "batch_id": "42", "event_type": 1, "event_data": {}, "event_hash": "b"},
        ]
        collection = MagicMock()
        collection.find.return_value.sort.return_value = AsyncCursor(docs)

        rows = await StageEventStore(collection).list_for_batch("42")

        collection.find.assert_called_once_with({"batch_id": "42"})
        collection.find.return_value.sort.assert_called_once_with("created_at", ASCENDING)
        assert [r["event_type"] for r in rows] == [0, 1]


@pytest.mark.asyncio
async def test_unencodable_metadata_is_store_failure():
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=OverflowError("MongoDB can only handle up to 8-byte ints"))
    with pytest.raises(UpstreamFailure, match="8-byte ints"):
        await StageEventStore(collection).insert("42", 0, {"n": 2**64}, "ab")


@pytest.mark.asyncio
async def test_invalid_document_is_store_failure():
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=InvalidDocument("cannot encode object"))
    with pytest.raises(UpstreamFailure):
        await StageEventStore(collection).insert("42", 0, {}, "ab")


def test_client_reads_timezone_aware_datetimes():
    settings = replace(load_settings(), mongo_uri="mongodb://localhost:27017", mongo_db="herbchain_test")
    with patch("herbchain.database.AsyncIOMotorClient") as client_cls:
        client, database = get_database(settings)

    client_cls.assert_called_once_with("mongodb://localhost:27017", tz_aware=True)
    assert client is client_cls.return_value
    client_cls.return_value.__getitem__.assert_called_once_with("herbchain_test")
