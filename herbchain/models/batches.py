# herbchain/models/batches.py

from enum import Enum, IntEnum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class StageKind(IntEnum):
    CollectionEvent = 0
    QualityTest = 1
    ProcessingStep = 2


class VerificationStatus(str, Enum):
    FULLY_VERIFIED = "FULLY_VERIFIED"
    PARTIALLY_VERIFIED = "PARTIALLY_VERIFIED"
    NOT_VERIFIED = "NOT_VERIFIED"


# =========================
# REQUEST MODELS
# =========================

class BatchCreate(BaseModel):
    batchName: Optional[str] = None


class StageEventCreate(BaseModel):
    formatted_batch_id: Optional[Union[str, int]] = None
    stage_type: Any = None
    metadata: Optional[Any] = None


# =========================
# RESPONSE MODELS
# =========================

class BatchCreated(BaseModel):
    batchId: str
    message: str = "Batch created successfully"


class StageEventRecord(BaseModel):
    id: str
    batch_id: str
    event_type: int
    event_data: Any = None
    event_hash: str
    created_at: Any = None


class StageEventRecorded(BaseModel):
    message: str = "Stage event recorded successfully"
    data: StageEventRecord
    batchHash: str


class LedgerStage(BaseModel):
    stageType: str
    timestamp: str
    metadataHash: str


class VerifiedStage(BaseModel):
    stage_type: int
    metadata: Any = None
    timestamp: Any = None
    data_integrity: bool
    on_chain_verified: bool
    verified: bool
    on_chain_data: Optional[LedgerStage] = None


class BatchSummary(BaseModel):
    total_stages: int
    verified_stages: int
    verification_status: VerificationStatus


class BatchStages(BaseModel):
    batch_id: str
    formatted_batch_id: str
    stages: List[VerifiedStage] = Field(description="Stage events in creation order, each checked against the ledger.")
    summary: BatchSummary


class ReportUploaded(BaseModel):
    message: str = "File uploaded successfully"
    fileUrl: str = Field(description="Public gateway URL of the stored report.")
