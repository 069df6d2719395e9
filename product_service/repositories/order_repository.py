from typing import Any, List, Optional

from product_service.models import Order
from product_service.repositories.base import BaseRepository
from product_service.repositories.pipeline import (
    Clause,
    as_str,
    facet_stages,
    match_stage,
    unpack_facet,
)
from product_service.schemas.common import to_object_id


def as_user_id(value: Any) -> Optional[Any]:
    # user ids come from the auth service and are stored as ObjectId when they parse as one
    return to_object_id(value) or as_str(value)


FILTER_CLAUSES = (
    Clause("userId", "userId", as_user_id),
    Clause("status", "status", as_str),
)


class OrderRepository(BaseRepository):
    collection_name = Order.COLLECTION
    not_found_code = "ORDER_NOT_FOUND"
    entity_name = "Order"

    @staticmethod
    def build_pipeline(filters: dict, page: int, limit: int) -> List[dict]:
        return [
            *match_stage(FILTER_CLAUSES, filters),
            {"$sort": {"createdAt": -1, "_id": -1}},
            *facet_stages(page, limit),
        ]

    async def find_all(self, filters: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.order.find_all") as span:
            span.set_attribute("app.pagination.page", page)
            span.set_attribute("app.pagination.limit", limit)
            return unpack_facet(await self.aggregate(self.build_pipeline(filters, page, limit)))
