# herbchain/ipfs_handler.py
import logging
import secrets
import time
from pathlib import PurePosixPath

import httpx

from herbchain.config import Settings
from herbchain.errors import UpstreamFailure

logger = logging.getLogger(__name__)

REPORTS_PREFIX = "reports"


class ReportStorage:
    """Uploads report files to the IPFS upload service and resolves gateway URLs."""

    def __init__(
        self,
        upload_url: str | None,
        gateway_public: str,
        gateway_local: str = "http://127.0.0.1:8080/ipfs/",
        is_local_dev: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._upload_url = upload_url
        self._gateway_public = gateway_public
        self._gateway_local = gateway_local
        self._is_local_dev = is_local_dev
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReportStorage":
        return cls(
            upload_url=settings.ipfs_upload_url,
            gateway_public=settings.ipfs_gateway_public,
            gateway_local=settings.ipfs_gateway_local,
            is_local_dev=settings.ipfs_local_dev,
        )

    def get_public_url(self, cid: str) -> str:
        """
        Resolves an IPFS hash (CID) to a URL, using the local gateway in
        local development and the public gateway everywhere else.
        """
        if not cid:
            return ""
        base_url = self._gateway_local if self._is_local_dev else self._gateway_public
        gateway = base_url.rstrip("/") + "/"
        return f"{gateway}{cid}"

    @staticmethod
    def object_path(filename: str) -> str:
        ext = PurePosixPath(filename or "").suffix.lstrip(".") or "bin"
        return f"{REPORTS_PREFIX}/{int(time.time() * 1000)}-{secrets.token_hex(6)}.{ext}"

    async def upload(self, content: bytes, filename: str, content_type: str | None = None) -> str:
        """Stores a report under reports/ and returns its public URL."""
        if not self._upload_url:
            raise UpstreamFailure("IPFS_UPLOAD_URL is not configured")

        path = self.object_path(filename)
        files = {"file": (path, content, content_type or "application/octet-stream")}
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(self._upload_url, files=files)
            response.raise_for_status()
            cid = response.json().get("Hash")
        except httpx.HTTPStatusError as e:
            raise UpstreamFailure(
                f"IPFS upload failed with status {e.response.status_code}: {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamFailure(f"IPFS upload failed: {e}") from e

        if not cid:
            raise UpstreamFailure("IPFS upload returned no CID")
        logger.info("Uploaded report %s as %s", path, cid)
        return self.get_public_url(cid)
