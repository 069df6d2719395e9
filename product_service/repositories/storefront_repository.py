import logging
import re
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from product_service.models import InventoryItem, Product, Variant
from product_service.repositories.pipeline import (
    Clause,
    as_float,
    facet_stages,
    match_stage,
    unpack_facet,
)
from product_service.schemas.common import to_object_id

logger = logging.getLogger(__name__)

PRICE_CLAUSES = (
    Clause("minPrice", "inventory.pricePerBaseUnit.amount", as_float, "gte"),
    Clause("maxPrice", "inventory.pricePerBaseUnit.amount", as_float, "lte"),
)

SELLABLE_ITEM_PROJECTION = {
    "_id": "$inventory._id",
    "productId": "$_id",
    "variantId": "$variant._id",
    "sku": "$variant.sku",
    "name": "$name",
    "brand": "$brand",
    "description": "$description",
    "options": "$variant.options",
    "price": "$inventory.pricePerBaseUnit",
    "stock": "$inventory.stockInBaseUnits",
    "images": {"$concatArrays": [{"$ifNull": ["$baseImages", []]}, {"$ifNull": ["$variant.variantImages", []]}]},
    "rating": "$rating",
    "sellerId": "$sellerId",
    "categoryId": "$categoryId",
}


def _csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class StorefrontRepository:
    """Product search joined down to sellable (variant, inventory) rows."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[Product.COLLECTION]
        self.tracer = trace.get_tracer("product_service.repositories.StorefrontRepository", "1.0.0")

    @staticmethod
    def build_pipeline(filters: dict, options: Dict[str, str], sort: dict, page: int, limit: int) -> Optional[List[dict]]:
        """Returns None when the filters can match nothing (no usable category id)."""
        initial: dict = {"isActive": True}
        search = filters.get("search")
        if search:
            initial["$text"] = {"$search": search}

        if filters.get("category"):
            category_ids = [oid for oid in map(to_object_id, _csv(filters["category"])) if oid is not None]
            if not category_ids:
                return None
            initial["categoryId"] = {"$in": category_ids}

        brands = _csv(filters.get("brand"))
        if brands:
            initial["brand"] = {"$in": [re.compile(re.escape(brand), re.IGNORECASE) for brand in brands]}

        seller_id = to_object_id(filters.get("sellerId")) if filters.get("sellerId") else None
        if seller_id is not None:
            initial["sellerId"] = seller_id

        pipeline: List[dict] = [{"$match": initial}]
        if search:
            pipeline.append({"$addFields": {"score": {"$meta": "textScore"}}})

        pipeline += [
            {"$lookup": {"from": Variant.COLLECTION, "localField": "_id", "foreignField": "productId", "as": "variant"}},
            {"$unwind": "$variant"},
            {"$lookup": {"from": InventoryItem.COLLECTION, "localField": "variant._id", "foreignField": "variantId", "as": "inventory"}},
            {"$unwind": "$inventory"},
        ]

        post_match = {
            "variant.isActive": True,
            "inventory.isActive": {"$ne": False},
            "inventory.stockInBaseUnits": {"$gt": 0},
        }
        price_stage = match_stage(PRICE_CLAUSES, filters)
        if price_stage:
            post_match.update(price_stage[0]["$match"])
        for option_name, option_value in options.items():
            post_match[f"variant.options.{option_name}"] = option_value
        pipeline.append({"$match": post_match})

        sort_by = sort.get("sortBy")
        if sort_by == "relevance" and search:
            sort_spec = {"score": -1, "_id": 1}
        elif sort_by == "price":
            direction = -1 if sort.get("sortOrder") == "desc" else 1
            sort_spec = {"inventory.pricePerBaseUnit.amount": direction, "_id": 1}
        else:
            sort_spec = {"createdAt": -1, "_id": 1}
        pipeline.append({"$sort": sort_spec})

        pipeline += facet_stages(page, limit, SELLABLE_ITEM_PROJECTION)
        return pipeline

    async def search(self, filters: dict, options: Dict[str, str], sort: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.storefront.search") as span:
            span.set_attribute("app.storefront.has_search", bool(filters.get("search")))
            span.set_attribute("app.storefront.option_filters", len(options))
            pipeline = self.build_pipeline(filters, options, sort, page, limit)
            if pipeline is None:
                span.add_event("No usable category ids; short-circuit")
                return {"items": [], "total": 0}
            try:
                results = await self.collection.aggregate(pipeline).to_list(length=None)
            except Exception as e:
                logger.error("Storefront search pipeline failed.", extra={"error": str(e)}, exc_info=True)
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "Storefront search failed"))
                raise
            return unpack_facet(results)
