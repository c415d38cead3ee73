# routes/batches.py
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile

from herbchain.batch_service import BatchService
from herbchain.deps import get_batch_service
from herbchain.errors import InvalidInput, UpstreamFailure
from herbchain.models.batches import (
    BatchCreate,
    BatchCreated,
    BatchStages,
    ReportUploaded,
    StageEventCreate,
    StageEventRecorded,
)

router = APIRouter(prefix="/api/batches", tags=["batches"])


@router.post("/create", response_model=BatchCreated)
async def create_batch_endpoint(body: BatchCreate, service: BatchService = Depends(get_batch_service)):
    try:
        batch_id = await service.create_batch(body.batchName)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    return BatchCreated(batchId=batch_id)


@router.post("/add-stage-event", status_code=201, response_model=StageEventRecorded)
async def add_stage_event(
    body: StageEventCreate,
    background_tasks: BackgroundTasks,
    service: BatchService = Depends(get_batch_service),
):
    """
    Records a stage event in the store and answers 201. The ledger mirror runs
    afterwards as a background task; its failures never reach the caller.
    """
    try:
        recorded = await service.record_stage(body.formatted_batch_id, body.stage_type, body.metadata)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(status_code=500, detail=str(e))

    background_tasks.add_task(
        service.mirror_stage,
        recorded.data.batch_id,
        recorded.data.event_type,
        recorded.batchHash,
    )
    return recorded


@router.get("/batch-stages/{formatted_batch_id}", response_model=BatchStages)
async def batch_stages(formatted_batch_id: str, service: BatchService = Depends(get_batch_service)):
    try:
        return await service.get_batch_stages(formatted_batch_id)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch batch stages: {e}")


@router.post("/upload-report", status_code=201, response_model=ReportUploaded)
async def upload_report(
    file: UploadFile | None = File(None),
    service: BatchService = Depends(get_batch_service),
):
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        file_url = await service.upload_report(await file.read(), file.filename, file.content_type)
    except UpstreamFailure as e:
        raise HTTPException(status_code=500, detail=f"Failed to upload file: {e}")
    return ReportUploaded(fileUrl=file_url)
