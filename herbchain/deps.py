# herbchain/deps.py
from fastapi import HTTPException, Request

from herbchain.batch_service import BatchService
from ml.report_analysis import ReportAnalyzer


def get_batch_service(request: Request) -> BatchService:
    service = getattr(request.app.state, "batch_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Batch service not configured")
    return service


def get_report_analyzer(request: Request) -> ReportAnalyzer:
    analyzer = getattr(request.app.state, "report_analyzer", None)
    if analyzer is None:
        raise HTTPException(status_code=500, detail="Report analyzer not configured")
    return analyzer
