# herbchain/batch_service.py
"""
Stage-event recording and store/ledger reconciliation for herb batches.

The document store is the record the caller sees. Every stage event is also
mirrored to the ledger after the caller has been answered; that mirror is
best-effort and its failures are only logged. Reads reconcile the two
sources by comparing metadata hashes.
"""
import asyncio
import logging
from typing import Any

from herbchain.errors import InvalidInput, UpstreamFailure
from herbchain.models.batches import (
    BatchStages,
    BatchSummary,
    LedgerStage,
    StageEventRecord,
    StageEventRecorded,
    StageKind,
    VerificationStatus,
    VerifiedStage,
)
from utils.hashing import metadata_hash

logger = logging.getLogger(__name__)
mirror_logger = logging.getLogger("herbchain.ledger_mirror")


def parse_stage_kind(stage_type: Any) -> StageKind:
    if not isinstance(stage_type, str) or stage_type not in StageKind.__members__:
        raise InvalidInput("Invalid stage type")
    return StageKind[stage_type]


def _find_ledger_stage(event: dict, ledger_stages: list[dict]) -> dict | None:
    same_kind = [s for s in ledger_stages if int(s["stageType"]) == int(event["event_type"])]
    for stage in same_kind:
        if stage["metadataHash"] == event["event_hash"]:
            return stage
    return same_kind[0] if same_kind else None


def verify_stage(event: dict, ledger_stages: list[dict]) -> VerifiedStage:
    """Checks one stored event against its own hash and then against the ledger."""
    data_integrity = metadata_hash(event["event_data"]) == event["event_hash"]

    on_chain_verified = False
    on_chain_stage = None
    if data_integrity:
        on_chain_stage = _find_ledger_stage(event, ledger_stages)
        on_chain_verified = bool(on_chain_stage) and on_chain_stage["metadataHash"] == event["event_hash"]

    return VerifiedStage(
        stage_type=event["event_type"],
        metadata=event["event_data"],
        timestamp=event["created_at"],
        data_integrity=data_integrity,
        on_chain_verified=on_chain_verified,
        verified=data_integrity and on_chain_verified,
        on_chain_data=LedgerStage(**on_chain_stage) if on_chain_stage else None,
    )


def summarize(stages: list[VerifiedStage]) -> BatchSummary:
    verified = sum(1 for s in stages if s.verified)
    if stages and verified == len(stages):
        status = VerificationStatus.FULLY_VERIFIED
    elif verified:
        status = VerificationStatus.PARTIALLY_VERIFIED
    else:
        status = VerificationStatus.NOT_VERIFIED
    return BatchSummary(total_stages=len(stages), verified_stages=verified, verification_status=status)


class BatchService:

    def __init__(self, ledger, store, reports):
        self.ledger = ledger
        self.store = store
        self.reports = reports

    async def create_batch(self, name: str | None) -> str:
        if not name or not name.strip():
            raise InvalidInput("batchName is required")
        result = await self.ledger.create_batch(name)
        logger.info("Created ledger batch %s for %r", result["batchId"], name)
        return result["batchId"]

    async def record_stage(self, formatted_batch_id: str | int | None, stage_type: Any,
                           metadata: Any = None) -> StageEventRecorded:
        kind = parse_stage_kind(stage_type)
        batch_id = str(formatted_batch_id).strip() if formatted_batch_id is not None else ""
        if not batch_id:
            raise InvalidInput("batch_id and stage_type are required")

        event_data = metadata if metadata is not None else {}
        batch_hash = metadata_hash(event_data)
        row = await self.store.insert(batch_id, int(kind), event_data, batch_hash)
        return StageEventRecorded(data=StageEventRecord(**row), batchHash=batch_hash)

    async def mirror_stage(self, formatted_batch_id: str, event_type: int, event_hash: str) -> None:
        """
        Appends an already-stored stage to the ledger. Runs after the caller has
        been answered, so failures are logged and never raised.
        """
        try:
            tx = await self.ledger.add_stage(formatted_batch_id, event_type, event_hash)
        except Exception:
            mirror_logger.exception(
                "Ledger mirror failed for batch %s (stage %s, hash %s)",
                formatted_batch_id, event_type, event_hash,
            )
            return
        mirror_logger.info(
            "Mirrored stage for batch %s: txHash=%s stageIndex=%s",
            formatted_batch_id, tx["txHash"], tx["stageIndex"],
        )

    async def _ledger_stages(self, formatted_batch_id: str) -> list[dict]:
        try:
            summary = await self.ledger.get_batch_summary(formatted_batch_id)
        except Exception as e:
            logger.error("Error fetching on-chain stages for batch %s: %s", formatted_batch_id, e)
            return []
        return summary.get("stages") or []

    async def _verify(self, event: dict, ledger_stages: list[dict]) -> VerifiedStage:
        return verify_stage(event, ledger_stages)

    async def get_batch_stages(self, formatted_batch_id: str | None) -> BatchStages:
        if not formatted_batch_id:
            raise InvalidInput("formatted_batch_id is required")

        events = await self.store.list_for_batch(formatted_batch_id)
        ledger_stages = await self._ledger_stages(formatted_batch_id)

        stages = list(await asyncio.gather(*(self._verify(e, ledger_stages) for e in events)))
        return BatchStages(
            batch_id=formatted_batch_id,
            formatted_batch_id=formatted_batch_id,
            stages=stages,
            summary=summarize(stages),
        )

    async def upload_report(self, content: bytes, filename: str, content_type: str | None = None) -> str:
        if content is None:
            raise InvalidInput("No file uploaded")
        try:
            return await self.reports.upload(content, filename, content_type)
        except UpstreamFailure:
            logger.exception("Error uploading report %s", filename)
            raise
