from typing import Any, List, Optional

from product_service.models import Variant
from product_service.repositories.base import BaseRepository
from product_service.repositories.pipeline import (
    Clause,
    as_bool,
    as_float,
    as_object_id,
    as_str,
    as_upper,
    facet_stages,
    match_stage,
    sort_stage,
    unpack_facet,
)
from product_service.schemas.common import to_object_id

FILTER_CLAUSES = (
    Clause("productId", "productId", as_object_id),
    Clause("sku", "sku", as_str, "contains"),
    Clause("q", "sku", as_str, "contains"),
    Clause("isActive", "isActive", as_bool),
    Clause("minPrice", "price.amount", as_float, "gte"),
    Clause("maxPrice", "price.amount", as_float, "lte"),
    Clause("currency", "price.currency", as_upper),
    Clause("baseUnit", "baseUnit", as_str),
)

SORT_FIELDS = {
    "price": "price.amount",
    "sku": "sku",
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
}


class VariantRepository(BaseRepository):
    collection_name = Variant.COLLECTION
    not_found_code = "VARIANT_NOT_FOUND"
    entity_name = "Variant"

    async def find_by_sku_within_product(self, product_id: Any, sku: str, exclude_id: Any = None) -> Optional[dict]:
        query: dict = {"productId": to_object_id(product_id), "sku": sku}
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return await self.find_one(query)

    async def find_by_product(self, product_id: Any) -> List[dict]:
        return await self.find({"productId": to_object_id(product_id)}, sort=[("createdAt", -1)])

    @staticmethod
    def build_pipeline(filters: dict, sort: dict, page: int, limit: int) -> List[dict]:
        return [
            *match_stage(FILTER_CLAUSES, filters),
            sort_stage(sort.get("sortBy"), sort.get("sortOrder"), SORT_FIELDS),
            *facet_stages(page, limit),
        ]

    async def find_all(self, filters: dict, sort: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.variant.find_all") as span:
            pipeline = self.build_pipeline(filters, sort, page, limit)
            span.set_attribute("app.pipeline.stages", len(pipeline))
            return unpack_facet(await self.aggregate(pipeline))
