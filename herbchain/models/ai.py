# herbchain/models/ai.py

from typing import Optional

from pydantic import BaseModel


class AnalysePdfRequest(BaseModel):
    pdfUrl: Optional[str] = None


class AnalysePdfResponse(BaseModel):
    rating: Optional[str] = None
