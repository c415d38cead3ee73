# routes/ai.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from herbchain.deps import get_report_analyzer
from herbchain.models.ai import AnalysePdfRequest, AnalysePdfResponse
from ml.report_analysis import ReportAnalyzer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/analyse-pdf", response_model=AnalysePdfResponse)
async def analyse_pdf(body: AnalysePdfRequest, analyzer: ReportAnalyzer = Depends(get_report_analyzer)):
    """Rates a lab-report PDF with the generative model."""
    if not body.pdfUrl:
        raise HTTPException(status_code=400, detail="PDF URL is required.")
    try:
        rating = await analyzer.analyse(body.pdfUrl)
        return AnalysePdfResponse(rating=rating)
    except Exception:
        logger.exception("Error analyzing PDF %s", body.pdfUrl)
        raise HTTPException(status_code=500, detail="Failed to analyze PDF.")
