"""
Lab-report quality rating.

Downloads a lab-report PDF, extracts its text and asks a Gemini model for a
one-word quality rating. The model is put in JSON mode with a one-field
response schema; its reply is trusted beyond parsing and a string check.
"""
import io
import json
import logging

import httpx
import pdfplumber

from herbchain.config import Settings
from herbchain.errors import UpstreamFailure

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

RATINGS = ["extremely good", "good", "healthy", "bad", "very bad"]

SYSTEM_PROMPT = """
You are an expert in analyzing lab reports for Ayurvedic herbs. Your task is to analyze the provided lab report of an Ayurvedic herb and determine the quality of the herbs.

Based on the lab report, you must provide a quality rating for the herbs. The rating should be one of the following five categories: 'extremely good', 'good', 'healthy', 'bad', or 'very bad'.

You must respond with a JSON object containing a single key: "rating". The value of this key should be the quality rating you have determined.

Example response:
{
  "rating": "good"
}

Do not include any other information or text in your response. Only the JSON object with the rating is required.
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {"rating": {"type": "STRING", "enum": RATINGS}},
    "required": ["rating"],
}


def extract_pdf_text(pdf_bytes: bytes) -> str:
    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            return "\n".join(page.extract_text() or "" for page in pdf.pages)
    except Exception as e:
        raise UpstreamFailure(f"Could not read PDF: {e}") from e


def build_request(pdf_text: str) -> dict:
    return {
        "contents": [
            {"role": "user", "parts": [{"text": SYSTEM_PROMPT}]},
            {"role": "user", "parts": [{"text": pdf_text}]},
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def parse_rating(body: dict) -> str:
    """Pulls the rating out of a generateContent response body."""
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
        rating = json.loads(text)["rating"]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise UpstreamFailure(f"Malformed model reply: {e}") from e
    if not isinstance(rating, str):
        raise UpstreamFailure(f"Model rating is not a string: {rating!r}")
    return rating


class ReportAnalyzer:

    def __init__(self, api_key: str | None, model: str = "gemini-2.5-flash",
                 transport: httpx.AsyncBaseTransport | None = None):
        self._api_key = api_key
        self._model = model
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReportAnalyzer":
        return cls(api_key=settings.gemini_api_key, model=settings.gemini_model)

    async def download(self, pdf_url: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=30.0, follow_redirects=True, transport=self._transport) as client:
                resp = await client.get(pdf_url)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamFailure(f"Failed to download PDF: {e}") from e
        return resp.content

    async def rate(self, pdf_text: str) -> str:
        if not self._api_key:
            raise UpstreamFailure("GEMINI_API_KEY is not configured")

        url = f"{GEMINI_API_BASE}/models/{self._model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    json=build_request(pdf_text),
                    headers={"x-goog-api-key": self._api_key},
                )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFailure(
                f"Gemini request failed (HTTP {e.response.status_code}): {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamFailure(f"Gemini request failed: {e}") from e
        return parse_rating(body)

    async def analyse(self, pdf_url: str) -> str:
        pdf_bytes = await self.download(pdf_url)
        pdf_text = extract_pdf_text(pdf_bytes)
        rating = await self.rate(pdf_text)
        logger.info("Rated report %s as %r", pdf_url, rating)
        return rating
