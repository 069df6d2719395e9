import logging
from typing import Optional

import httpx

from product_service.core.config import settings
from product_service.core.errors import MediaHostError

logger = logging.getLogger(__name__)


class ImageKitClient:
    """Media host client: multipart upload and delete by fileId over the ImageKit REST API."""

    def __init__(
        self,
        private_key: Optional[str] = None,
        upload_url: Optional[str] = None,
        api_url: Optional[str] = None,
        folder: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.private_key = private_key if private_key is not None else settings.IMAGEKIT_PRIVATE_KEY
        self.upload_url = upload_url or settings.IMAGEKIT_UPLOAD_URL
        self.api_url = (api_url or settings.IMAGEKIT_API_URL).rstrip("/")
        self.folder = folder or settings.IMAGEKIT_FOLDER
        self.timeout = timeout or settings.MEDIA_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, auth=(self.private_key, ""), transport=self.transport)

    async def upload(self, content: bytes, filename: str, content_type: str = "application/octet-stream") -> dict:
        """Upload one file; returns the host's JSON (fileId, url, name, ...)."""
        async with self._client() as client:
            try:
                response = await client.post(
                    self.upload_url,
                    files={"file": (filename, content, content_type)},
                    data={"fileName": filename, "folder": self.folder, "useUniqueFileName": "true"},
                )
                response.raise_for_status()
            except httpx.RequestError as e:
                logger.error("Media host unreachable during upload.", extra={"file_name": filename, "error": str(e)})
                raise MediaHostError("Media host unavailable", code="IMAGEKIT_UPLOAD_ERROR", details=str(e))
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Media host rejected upload.",
                    extra={"file_name": filename, "status_code": e.response.status_code, "body": e.response.text[:500]},
                )
                raise MediaHostError("Image upload failed", code="IMAGEKIT_UPLOAD_ERROR", details=e.response.text[:500])
            result = response.json()
            logger.info("Image uploaded.", extra={"file_id": result.get("fileId"), "file_name": filename})
            return result

    async def delete(self, file_id: str) -> None:
        async with self._client() as client:
            try:
                response = await client.delete(f"{self.api_url}/files/{file_id}")
                response.raise_for_status()
            except httpx.RequestError as e:
                raise MediaHostError("Media host unavailable", code="IMAGEKIT_DELETE_ERROR", details=str(e))
            except httpx.HTTPStatusError as e:
                raise MediaHostError(
                    f"Image delete failed for {file_id}", code="IMAGEKIT_DELETE_ERROR", details=e.response.text[:500]
                )
            logger.info("Image deleted.", extra={"file_id": file_id})
