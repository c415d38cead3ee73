from datetime import datetime, timezone

from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from herbchain.config import Settings
from herbchain.errors import UpstreamFailure

STAGE_EVENTS = "stage_events"


# ==============================
# MongoDB Connection
# ==============================

def get_database(settings: Settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    if not settings.mongo_uri:
        raise RuntimeError("MONGO_URI is not set")
    client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
    return client, client[settings.mongo_db]


# ==============================
# Helpers
# ==============================

def stage_event_helper(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "batch_id": doc.get("batch_id"),
        "event_type": doc.get("event_type"),
        "event_data": doc.get("event_data", {}),
        "event_hash": doc.get("event_hash"),
        "created_at": doc.get("created_at"),
    }


# ==============================
# STAGE EVENTS (append-only)
# ==============================

"""
Stage event document shape:

- batch_id     formatted batch id as sent by the caller
- event_type   0 collection, 1 quality test, 2 processing
- event_data   metadata payload
- event_hash   hex SHA-256 of the canonical metadata
- created_at   UTC insert time
"""

class StageEventStore:

    def __init__(self, collection):
        self._collection = collection

    @classmethod
    def from_database(cls, database: AsyncIOMotorDatabase) -> "StageEventStore":
        return cls(database[STAGE_EVENTS])

    async def insert(self, batch_id: str, event_type: int, event_data: dict, event_hash: str) -> dict:
        doc = {
            "batch_id": batch_id,
            "event_type": event_type,
            "event_data": event_data,
            "event_hash": event_hash,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            res = await self._collection.insert_one(doc)
        except (PyMongoError, BSONError, OverflowError) as e:
            raise UpstreamFailure(f"Failed to insert stage event: {e}") from e
        doc["_id"] = res.inserted_id
        return stage_event_helper(doc)

    async def list_for_batch(self, batch_id: str) -> list[dict]:
        try:
            cursor = self._collection.find({"batch_id": batch_id}).sort("created_at", ASCENDING)
            return [stage_event_helper(doc) async for doc in cursor]
        except (PyMongoError, BSONError, OverflowError) as e:
            raise UpstreamFailure(f"Failed to fetch stage events: {e}") from e
