"""Request payload intake for endpoints that accept either JSON or multipart form data.

Multipart requests carry scalar fields as strings, structured fields as JSON
strings, and image files under ``images``.
"""
import json
import logging
from typing import List, Optional, Tuple, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from product_service.core.config import settings
from product_service.core.errors import ValidationError
from product_service.services.upload_service import ImageFile

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

IMAGE_FIELD = "images"
SINGLE_IMAGE_FIELD = "image"
ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
JSON_FIELDS = frozenset(
    {
        "attributes",
        "baseImages",
        "options",
        "price",
        "variantImages",
        "pricePerBaseUnit",
        "manufacturingDetails",
    }
)


def _is_form(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.startswith("multipart/form-data") or content_type.startswith(
        "application/x-www-form-urlencoded"
    )


def _parse_json_field(name: str, value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        raise ValidationError(
            f"Field '{name}' must be valid JSON",
            details=[{"field": name, "message": "must be valid JSON", "value": value[:200]}],
        )


async def _to_image_file(upload: UploadFile, max_bytes: int) -> ImageFile:
    if upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            f"Unsupported file type {upload.content_type!r}; allowed: jpeg, png, webp",
            code="INVALID_FILE_TYPE",
            details=[{"field": IMAGE_FIELD, "message": "unsupported file type", "value": upload.filename}],
        )
    content = await upload.read()
    if len(content) > max_bytes:
        raise ValidationError(
            f"File {upload.filename!r} exceeds the {max_bytes // (1024 * 1024)}MB limit",
            code="FILE_TOO_LARGE",
            details=[{"field": IMAGE_FIELD, "message": "file too large", "value": upload.filename}],
        )
    return ImageFile(filename=upload.filename or "image", content_type=upload.content_type, content=content)


async def collect_images(
    uploads: List[UploadFile],
    max_files: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> List[ImageFile]:
    max_files = max_files or settings.MAX_UPLOAD_FILES
    max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES
    if len(uploads) > max_files:
        raise ValidationError(f"At most {max_files} images can be uploaded at once", code="TOO_MANY_FILES")
    return [await _to_image_file(upload, max_bytes) for upload in uploads]


async def read_payload(request: Request, model: Type[ModelT]) -> Tuple[ModelT, List[ImageFile]]:
    """Parse the request body into ``model`` and collect any uploaded images."""
    if not _is_form(request):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return model.model_validate(body), []

    form = await request.form()
    data = {}
    uploads = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key in (IMAGE_FIELD, SINGLE_IMAGE_FIELD):
                uploads.append(value)
            continue
        data[key] = _parse_json_field(key, value) if key in JSON_FIELDS else value
    files = await collect_images(uploads)
    logger.debug("Multipart payload parsed.", extra={"fields": sorted(data), "file_count": len(files)})
    return model.model_validate(data), files


async def read_single_image(request: Request) -> Optional[ImageFile]:
    """The one image of an image-replacement request, or None when none was sent."""
    if not _is_form(request):
        return None
    form = await request.form()
    uploads = [
        value
        for key, value in form.multi_items()
        if isinstance(value, UploadFile) and key in (SINGLE_IMAGE_FIELD, IMAGE_FIELD)
    ]
    if not uploads:
        return None
    files = await collect_images(uploads[:1])
    return files[0]
