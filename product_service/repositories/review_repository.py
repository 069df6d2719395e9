from typing import Any, List, Optional

from product_service.models import Review
from product_service.repositories.base import BaseRepository
from product_service.repositories.pipeline import (
    Clause,
    as_int,
    as_object_id,
    facet_stages,
    match_stage,
    unpack_facet,
)
from product_service.schemas.common import to_object_id

FILTER_CLAUSES = (
    Clause("productId", "productId", as_object_id),
    Clause("userId", "userId", as_object_id),
    Clause("rating", "rating", as_int),
    Clause("minRating", "rating", as_int, "gte"),
)


class ReviewRepository(BaseRepository):
    collection_name = Review.COLLECTION
    not_found_code = "REVIEW_NOT_FOUND"
    entity_name = "Review"

    async def find_by_user_and_product(self, user_id: Any, product_id: Any) -> Optional[dict]:
        return await self.find_one({"productId": to_object_id(product_id), "userId": to_object_id(user_id) or user_id})

    @staticmethod
    def build_pipeline(filters: dict, page: int, limit: int) -> List[dict]:
        return [
            *match_stage(FILTER_CLAUSES, filters),
            {"$sort": {"createdAt": -1, "_id": -1}},
            *facet_stages(page, limit),
        ]

    async def find_all(self, filters: dict, page: int, limit: int) -> dict:
        with self.tracer.start_as_current_span("repository.review.find_all") as span:
            pipeline = self.build_pipeline(filters, page, limit)
            span.set_attribute("app.pipeline.stages", len(pipeline))
            return unpack_facet(await self.aggregate(pipeline))

    async def rating_summary(self, product_id: Any) -> dict:
        """Mean rating and review count for one product; ``{average: 0, count: 0}`` without reviews."""
        pipeline = [
            {"$match": {"productId": to_object_id(product_id)}},
            {"$group": {"_id": "$productId", "average": {"$avg": "$rating"}, "count": {"$sum": 1}}},
        ]
        results = await self.aggregate(pipeline)
        if not results:
            return {"average": 0, "count": 0}
        return {"average": results[0]["average"], "count": results[0]["count"]}
