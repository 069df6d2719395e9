import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from opentelemetry.trace import Status, StatusCode

from product_service.models import InventoryItem, Product, Variant
from product_service.repositories.base import BaseRepository
from product_service.repositories.pipeline import (
    Clause,
    as_bool,
    as_datetime,
    as_float,
    as_int,
    as_object_id,
    as_str,
    facet_stages,
    match_stage,
    sort_stage,
    unpack_facet,
)
from product_service.schemas.common import to_object_id

logger = logging.getLogger(__name__)

# Filters on the inventory document itself; applied before any join.
PRE_JOIN_CLAUSES = (
    Clause("variantId", "variantId", as_object_id),
    Clause("batchNumber", "batchNumber", as_str, "contains"),
    Clause("status", "status", as_str),
    Clause("isActive", "isActive", as_bool),
    Clause("inStock", "stockInBaseUnits", as_bool, "in_stock"),
    Clause("minPrice", "pricePerBaseUnit.amount", as_float, "gte"),
    Clause("maxPrice", "pricePerBaseUnit.amount", as_float, "lte"),
    Clause("minStock", "stockInBaseUnits", as_int, "gte"),
    Clause("maxStock", "stockInBaseUnits", as_int, "lte"),
    Clause("mfgDateFrom", "manufacturingDetails.mfgDate", as_datetime, "gte"),
    Clause("mfgDateTo", "manufacturingDetails.mfgDate", as_datetime, "lte"),
    Clause("expDateFrom", "manufacturingDetails.expDate", as_datetime, "gte"),
    Clause("expDateTo", "manufacturingDetails.expDate", as_datetime, "lte"),
    Clause("excludeExpired", "manufacturingDetails.expDate", as_bool, "not_expired"),
)

# Filters on fields that only exist once variant and product are joined in.
POST_JOIN_CLAUSES = (
    Clause("productName", "product.name", as_str, "contains"),
    Clause("sku", "variant.sku", as_str, "contains"),
    Clause("sellerId", "product.sellerId", as_object_id),
)

SORT_FIELDS = {
    "price": "pricePerBaseUnit.amount",
    "stock": "stockInBaseUnits",
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
    "expDate": "manufacturingDetails.expDate",
    "mfgDate": "manufacturingDetails.mfgDate",
}

ITEM_PROJECTION = {
    "variantId": 1,
    "batchNumber": 1,
    "stockInBaseUnits": 1,
    "pricePerBaseUnit": 1,
    "status": 1,
    "manufacturingDetails": 1,
    "hsnCode": 1,
    "gstPercentage": 1,
    "isActive": 1,
    "createdAt": 1,
    "updatedAt": 1,
    "variant._id": 1,
    "variant.sku": 1,
    "variant.options": 1,
    "variant.baseUnit": 1,
    "product._id": 1,
    "product.name": 1,
    "product.brand": 1,
    "product.sellerId": 1,
}

JOIN_STAGES = (
    {"$lookup": {"from": Variant.COLLECTION, "localField": "variantId", "foreignField": "_id", "as": "variant"}},
    {"$unwind": {"path": "$variant", "preserveNullAndEmptyArrays": True}},
    {"$lookup": {"from": Product.COLLECTION, "localField": "variant.productId", "foreignField": "_id", "as": "product"}},
    {"$unwind": {"path": "$product", "preserveNullAndEmptyArrays": True}},
)


class InventoryItemRepository(BaseRepository):
    collection_name = InventoryItem.COLLECTION
    not_found_code = "INVENTORY_ITEM_NOT_FOUND"
    entity_name = "Inventory item"

    async def find_by_batch(self, variant_id: Any, batch_number: str, exclude_id: Any = None) -> Optional[dict]:
        query: dict = {"variantId": to_object_id(variant_id), "batchNumber": batch_number}
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return await self.find_one(query)

    @staticmethod
    def build_pipeline(filters: dict, sort: dict, page: int, limit: int) -> List[dict]:
        """Pre-join match, joins, post-join match, sort, then one facet for page + total."""
        return [
            *match_stage(PRE_JOIN_CLAUSES, filters),
            *JOIN_STAGES,
            *match_stage(POST_JOIN_CLAUSES, filters),
            sort_stage(sort.get("sortBy"), sort.get("sortOrder"), SORT_FIELDS),
            *facet_stages(page, limit, ITEM_PROJECTION),
        ]

    async def find_all(self, filters: dict, sort: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.inventory_item.find_all") as span:
            span.set_attribute("app.pagination.page", page)
            span.set_attribute("app.pagination.limit", limit)
            span.set_attribute("app.inventory.filters", sorted(key for key, value in filters.items() if value is not None))
            pipeline = self.build_pipeline(filters, sort, page, limit)
            try:
                result = unpack_facet(await self.aggregate(pipeline))
            except Exception as e:
                logger.error("Inventory search pipeline failed.", extra={"error": str(e)}, exc_info=True)
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "Inventory search failed"))
                raise
            span.set_attribute("app.inventory.total", result["total"])
            return result

    async def sellable_stock(self, variant_id: Any) -> int:
        """Stock over the variant's active batches that are in stock and not past their expiry date."""
        pipeline = [
            {
                "$match": {
                    "variantId": to_object_id(variant_id),
                    "isActive": True,
                    "stockInBaseUnits": {"$gt": 0},
                    "$or": [
                        {"manufacturingDetails.expDate": None},
                        {"manufacturingDetails.expDate": {"$gte": datetime.now(timezone.utc)}},
                    ],
                }
            },
            {"$group": {"_id": "$variantId", "available": {"$sum": "$stockInBaseUnits"}}},
        ]
        with self.tracer.start_as_current_span("repository.inventory_item.sellable_stock") as span:
            span.set_attribute("app.variant.id", str(variant_id))
            result = await self.aggregate(pipeline)
            available = int(result[0]["available"]) if result else 0
            span.set_attribute("app.inventory.available", available)
            return available
