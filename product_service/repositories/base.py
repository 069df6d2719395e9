import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry import trace
from pymongo import ReturnDocument

from product_service.core.errors import NotFoundError
from product_service.schemas.common import to_object_id

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseRepository:
    """Async CRUD over one collection. Documents are plain dicts with ObjectId ids."""

    collection_name: str = ""
    not_found_code: str = "NOT_FOUND"
    entity_name: str = "Document"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.collection_name]
        self.tracer = trace.get_tracer(f"product_service.repositories.{self.__class__.__name__}", "1.0.0")

    def not_found(self) -> NotFoundError:
        return NotFoundError(f"{self.entity_name} not found", code=self.not_found_code)

    async def create(self, data: dict) -> dict:
        now = utc_now()
        document = {**data, "createdAt": now, "updatedAt": now}
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.debug("Document inserted.", extra={"collection": self.collection_name, "id": str(result.inserted_id)})
        return document

    async def find_by_id(self, id: Any) -> Optional[dict]:
        oid = to_object_id(id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid})

    async def get_by_id(self, id: Any) -> dict:
        document = await self.find_by_id(id)
        if document is None:
            raise self.not_found()
        return document

    async def find_one(self, filter: dict) -> Optional[dict]:
        return await self.collection.find_one(filter)

    async def find(self, filter: dict, sort: Optional[List[tuple]] = None, limit: int = 0) -> List[dict]:
        cursor = self.collection.find(filter)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, filter: dict) -> int:
        return await self.collection.count_documents(filter)

    async def update_by_id(self, id: Any, data: dict) -> Optional[dict]:
        oid = to_object_id(id)
        if oid is None:
            return None
        return await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**data, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )

    async def delete_by_id(self, id: Any) -> Optional[dict]:
        oid = to_object_id(id)
        if oid is None:
            return None
        return await self.collection.find_one_and_delete({"_id": oid})

    async def aggregate(self, pipeline: List[dict]) -> List[dict]:
        return await self.collection.aggregate(pipeline).to_list(length=None)
