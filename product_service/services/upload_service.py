import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from product_service.core.errors import InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALT_TEXT_MAX_LENGTH = 150


@dataclass(frozen=True)
class ImageFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def default_alt_text(self) -> str:
        return (self.filename or "").split(".")[0][:ALT_TEXT_MAX_LENGTH]


class UploadService:
    """Uploads image batches to the media host and reverts them when a later step fails.

    A batch either fully succeeds or every upload it made is deleted again.
    Compensating deletes are best-effort: failures are logged and reported
    back to the caller, never raised.
    """

    def __init__(self, media_client):
        self.media_client = media_client
        self.tracer = trace.get_tracer("product_service.services.UploadService", "1.0.0")

    async def _upload_one(self, file: ImageFile, alt_text: Optional[str]) -> dict:
        result = await self.media_client.upload(file.content, file.filename, file.content_type)
        return {
            "url": result["url"],
            "fileId": result["fileId"],
            "altText": (alt_text or file.default_alt_text)[:ALT_TEXT_MAX_LENGTH],
        }

    async def upload_images(self, files: Sequence[ImageFile], alt_texts: Optional[Sequence[str]] = None) -> List[dict]:
        """Upload concurrently; results follow input order."""
        if not files:
            return []
        alt_texts = list(alt_texts or [])
        with self.tracer.start_as_current_span("service.upload.upload_images") as span:
            span.set_attribute("app.upload.file_count", len(files))
            results = await asyncio.gather(
                *(
                    self._upload_one(file, alt_texts[index] if index < len(alt_texts) else None)
                    for index, file in enumerate(files)
                ),
                return_exceptions=True,
            )
            failures = [result for result in results if isinstance(result, BaseException)]
            if not failures:
                span.set_status(Status(StatusCode.OK))
                return list(results)

            uploaded = [result for result in results if not isinstance(result, BaseException)]
            span.set_attribute("app.upload.failed_count", len(failures))
            span.set_attribute("app.upload.rolled_back_count", len(uploaded))
            span.record_exception(failures[0])
            span.set_status(Status(StatusCode.ERROR, "Image batch upload failed"))
            logger.error(
                "Image batch upload failed; rolling back successful uploads.",
                extra={"failed": len(failures), "uploaded": len(uploaded), "error": str(failures[0])},
            )
            await self.delete_images([image["fileId"] for image in uploaded], log_code="UPLOAD_BATCH_ROLLBACK")
            raise InternalError(
                "Failed to upload product images",
                code="PRODUCT_IMAGE_UPLOAD_FAILED",
                details=str(failures[0]),
            ) from failures[0]

    async def execute_with_upload_rollback(
        self,
        images: Sequence[dict],
        action: Callable[[Sequence[dict]], Awaitable[T]],
        rollback_log_code: str = "UPLOAD_ROLLBACK",
    ) -> T:
        """Run ``action(images)``; if it raises, delete every uploaded fileId and re-raise unchanged."""
        try:
            return await action(images)
        except Exception as e:
            file_ids = [image["fileId"] for image in images if image.get("fileId")]
            logger.warning(
                "Action after upload failed; deleting uploaded images.",
                extra={"log_code": rollback_log_code, "file_ids": file_ids, "error": str(e)},
            )
            if file_ids:
                await self.delete_images(file_ids, log_code=rollback_log_code)
            raise

    async def delete_images(self, file_ids: Sequence[str], log_code: str = "IMAGE_DELETE_FAIL") -> List[str]:
        """Best-effort concurrent delete. Returns the fileIds that could not be deleted."""
        file_ids = [file_id for file_id in file_ids if file_id]
        if not file_ids:
            return []
        with self.tracer.start_as_current_span("service.upload.delete_images") as span:
            span.set_attribute("app.upload.delete_count", len(file_ids))
            results = await asyncio.gather(
                *(self.media_client.delete(file_id) for file_id in file_ids),
                return_exceptions=True,
            )
            failed = [
                file_id for file_id, result in zip(file_ids, results) if isinstance(result, BaseException)
            ]
            if failed:
                errors = [str(result) for result in results if isinstance(result, BaseException)]
                span.set_attribute("app.upload.delete_failed_count", len(failed))
                logger.error(
                    "Some images could not be deleted.",
                    extra={"log_code": log_code, "failed_file_ids": failed, "errors": errors},
                )
            return failed
