from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from fastapi.responses import JSONResponse


def serialize(value: Any) -> Any:
    """Make stored documents JSON-ready: ``_id`` -> ``id``, ObjectId -> str, datetime -> ISO 8601."""
    if isinstance(value, dict):
        return {("id" if key == "_id" else key): serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def success(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "message": message, "data": serialize(data)},
    )


def error(code: str, message: str, status_code: int, details: Any = None, error_id: Optional[str] = None) -> JSONResponse:
    body = {"code": code, "message": message}
    if details is not None:
        body["details"] = serialize(details)
    if error_id is not None:
        body["errorId"] = error_id
    return JSONResponse(status_code=status_code, content={"success": False, "error": body})
