import logging
from typing import Any, List, Optional

from opentelemetry.trace import Status, StatusCode

from product_service.models import Product
from product_service.repositories.base import BaseRepository, utc_now
from product_service.repositories.pipeline import (
    Clause,
    as_bool,
    as_datetime,
    as_object_id,
    as_object_id_list,
    as_str,
    build_match,
)
from product_service.schemas.common import to_object_id

logger = logging.getLogger(__name__)

FILTER_CLAUSES = (
    Clause("categoryId", "categoryId", as_object_id),
    Clause("sellerId", "sellerId", as_object_id),
    Clause("brand", "brand", as_str),
    Clause("isActive", "isActive", as_bool),
    Clause("ids", "_id", as_object_id_list, "in"),
    Clause("createdFrom", "createdAt", as_datetime, "gte"),
    Clause("createdTo", "createdAt", as_datetime, "lte"),
    Clause("updatedFrom", "updatedAt", as_datetime, "gte"),
    Clause("updatedTo", "updatedAt", as_datetime, "lte"),
)

SORTABLE_FIELDS = frozenset({"name", "brand", "createdAt", "updatedAt", "rating.average", "rating.count"})


def parse_sort(sort: Optional[str]) -> List[tuple]:
    """``"-createdAt,name"`` -> ``[("createdAt", -1), ("name", 1)]``; unknown fields are ignored."""
    spec = []
    for part in (sort or "").split(","):
        part = part.strip()
        field, direction = (part[1:], -1) if part.startswith("-") else (part, 1)
        if field in SORTABLE_FIELDS:
            spec.append((field, direction))
    return spec


def build_search_query(params: dict) -> tuple:
    """Filter, projection and sort for the product listing."""
    filter = build_match(FILTER_CLAUSES, params)
    q = as_str(params.get("q"))
    if q:
        filter["$text"] = {"$search": q}

    projection = None
    fields = [field.strip() for field in (params.get("fields") or "").split(",") if field.strip()]
    if fields:
        projection = {"_id": 1, **{field: 1 for field in fields}}
    if q:
        projection = {**(projection or {}), "score": {"$meta": "textScore"}}

    sort = parse_sort(params.get("sort"))
    if not sort:
        sort = [("score", {"$meta": "textScore"}), ("createdAt", -1)] if q else [("createdAt", -1)]
    return filter, projection, sort


class ProductRepository(BaseRepository):
    collection_name = Product.COLLECTION
    not_found_code = "PRODUCT_NOT_FOUND"
    entity_name = "Product"

    async def create(self, data: dict) -> dict:
        return await super().create({"rating": Product.empty_rating(), **data})

    async def find_by_name(self, name: str, seller_id: Any = None, exclude_id: Any = None) -> Optional[dict]:
        query: dict = {"name": name}
        if seller_id is not None:
            query["sellerId"] = to_object_id(seller_id) or seller_id
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return await self.find_one(query)

    async def search(self, params: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.product.search") as span:
            span.set_attribute("app.pagination.page", page)
            span.set_attribute("app.pagination.limit", limit)
            filter, projection, sort = build_search_query(params)
            cursor = self.collection.find(filter, projection).sort(sort)
            items = await cursor.skip((page - 1) * limit).limit(limit).to_list(length=None)
            total = await self.count(filter)
            span.set_attribute("app.product.search.total", total)
            return {"items": items, "total": total}

    async def update_rating(self, product_id: Any, average: float, count: int) -> Optional[dict]:
        """Write the denormalized review aggregate; called only by ReviewService."""
        with self.tracer.start_as_current_span("repository.product.update_rating") as span:
            span.set_attribute("app.product.id", str(product_id))
            span.set_attribute("app.product.rating.count", count)
            updated = await self.collection.find_one_and_update(
                {"_id": to_object_id(product_id)},
                {"$set": {"rating.average": average, "rating.count": count, "updatedAt": utc_now()}},
                projection={"rating": 1},
            )
            if updated is None:
                logger.warning("Rating recompute target missing.", extra={"product_id": str(product_id)})
                span.set_status(Status(StatusCode.ERROR, "Product not found"))
            return updated
