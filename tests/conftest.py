"""
Shared fixtures: in-memory doubles for the ledger, the stage-event store and
report storage, wired into a real BatchService and FastAPI app.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from herbchain.batch_service import BatchService
from herbchain.blockchain_client import ledger_batch_id
from herbchain.errors import UpstreamFailure
from herbchain.main import create_app


class FakeLedger:
    def __init__(self) -> None:
        self.batches: dict[int, dict[str, Any]] = {}
        self.next_id = 1
        self.fail_reads = False
        self.fail_writes = False
        self.add_stage_calls: list[tuple] = []

    async def create_batch(self, sku: str) -> dict:
        if self.fail_writes:
            raise UpstreamFailure("execution reverted")
        batch_id = self.next_id
        self.next_id += 1
        self.batches[batch_id] = {"sku": sku, "stages": []}
        return {"batchId": str(batch_id)}

    async def add_stage(self, batch_id, stage_type: int, metadata_hash: str) -> dict:
        self.add_stage_calls.append((batch_id, stage_type, metadata_hash))
        if self.fail_writes:
            raise UpstreamFailure("nonce too low")
        numeric_id = ledger_batch_id(batch_id)
        batch = self.batches.setdefault(numeric_id, {"sku": "", "stages": []})
        batch["stages"].append({
            "stageType": str(stage_type),
            "timestamp": "1700000000",
            "metadataHash": metadata_hash,
        })
        return {"txHash": "0x" + "ab" * 32, "stageIndex": str(len(batch["stages"]) - 1)}

    async def get_batch_summary(self, batch_id) -> dict:
        if self.fail_reads:
            raise UpstreamFailure("connection refused")
        batch = self.batches.get(ledger_batch_id(batch_id), {"sku": "", "stages": []})
        return {
            "sku": batch["sku"],
            "stageCount": str(len(batch["stages"])),
            "stages": list(batch["stages"]),
        }


class FakeStore:
    def __init__(self) -> None:
        self.rows: list[dict] = []
        self.fail = False
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    async def insert(self, batch_id: str, event_type: int, event_data: Any, event_hash: str) -> dict:
        if self.fail:
            raise UpstreamFailure("store unavailable")
        self._clock += timedelta(seconds=1)
        row = {
            "id": str(len(self.rows) + 1),
            "batch_id": batch_id,
            "event_type": event_type,
            "event_data": event_data,
            "event_hash": event_hash,
            "created_at": self._clock,
        }
        self.rows.append(row)
        return dict(row)

    async def list_for_batch(self, batch_id: str) -> list[dict]:
        if self.fail:
            raise UpstreamFailure("store unavailable")
        rows = [dict(r) for r in self.rows if r["batch_id"] == batch_id]
        return sorted(rows, key=lambda r: r["created_at"])


class FakeReports:
    def __init__(self) -> None:
        self.uploads: list[tuple] = []
        self.fail = False

    async def upload(self, content: bytes, filename: str, content_type: str | None = None) -> str:
        if self.fail:
            raise UpstreamFailure("IPFS upload failed with status 502: bad gateway")
        self.uploads.append((content, filename, content_type))
        return f"https://ipfs.io/ipfs/bafy{len(self.uploads)}"


class FakeAnalyzer:
    def __init__(self, rating: str = "good") -> None:
        self.rating = rating
        self.error: Exception | None = None
        self.urls: list[str] = []

    async def analyse(self, pdf_url: str) -> str:
        self.urls.append(pdf_url)
        if self.error:
            raise self.error
        return self.rating


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def reports() -> FakeReports:
    return FakeReports()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def service(ledger: FakeLedger, store: FakeStore, reports: FakeReports) -> BatchService:
    return BatchService(ledger=ledger, store=store, reports=reports)


@pytest.fixture
def client(service: BatchService, analyzer: FakeAnalyzer) -> TestClient:
    app = create_app(batch_service=service, report_analyzer=analyzer)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
