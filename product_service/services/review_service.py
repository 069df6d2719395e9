import logging
from typing import Optional

from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ForbiddenError, ValidationError
from product_service.repositories.product_repository import ProductRepository
from product_service.repositories.review_repository import ReviewRepository
from product_service.schemas.common import build_page_meta, to_object_id
from product_service.schemas.review import ReviewCreate, ReviewUpdate
from product_service.services.base import assert_product_active, require_actor, service_operation

logger = logging.getLogger(__name__)


class ReviewService:
    """Reviews, plus the product rating aggregate they feed.

    Every successful create, update and delete is followed by an explicit
    ``recompute_product_rating`` call; nothing else writes ``rating``.
    """

    def __init__(self, reviews: ReviewRepository, products: ProductRepository):
        self.reviews = reviews
        self.products = products
        self.tracer = trace.get_tracer("product_service.services.ReviewService", "1.0.0")

    async def recompute_product_rating(self, product_id) -> dict:
        with self.tracer.start_as_current_span("service.review.recompute_product_rating") as span:
            span.set_attribute("app.product.id", str(product_id))
            summary = await self.reviews.rating_summary(product_id)
            average = float(summary["average"] or 0)
            await self.products.update_rating(product_id, average, summary["count"])
            span.set_attribute("app.product.rating.average", average)
            return {"average": average, "count": summary["count"]}

    def _assert_author(self, review: dict, actor: CurrentUser, action: str):
        if str(review.get("userId")) != actor.id:
            raise ForbiddenError(f"You can only {action} your own reviews", code="FORBIDDEN")

    @service_operation("service.review.create", "CREATE_REVIEW_FAILED", "Failed to create review")
    async def create(self, data: ReviewCreate, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        product = await self.products.get_by_id(data.product_id)
        assert_product_active(product, "review product")
        if await self.reviews.find_by_user_and_product(actor.id, product["_id"]):
            raise ValidationError("You have already reviewed this product", code="DUPLICATE_REVIEW")

        review = await self.reviews.create(
            {
                "productId": product["_id"],
                "userId": to_object_id(actor.id) or actor.id,
                "rating": data.rating,
                "comment": data.comment,
            }
        )
        await self.recompute_product_rating(product["_id"])
        logger.info("Review created.", extra={"review_id": str(review["_id"]), "product_id": str(product["_id"])})
        return review

    @service_operation("service.review.get_all", "FETCH_REVIEWS_FAILED", "Failed to fetch reviews")
    async def get_all(self, filters: dict, page: int, limit: int) -> dict:
        result = await self.reviews.find_all(filters, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.review.get_by_product", "FETCH_REVIEWS_FAILED", "Failed to fetch reviews")
    async def get_by_product(self, product_id: str, page: int = 1, limit: int = 20) -> dict:
        await self.products.get_by_id(product_id)
        result = await self.reviews.find_all({"productId": product_id}, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.review.get_by_id", "FETCH_REVIEW_FAILED", "Failed to fetch review")
    async def get_by_id(self, review_id: str) -> dict:
        return await self.reviews.get_by_id(review_id)

    @service_operation("service.review.update", "UPDATE_REVIEW_FAILED", "Failed to update review")
    async def update(self, review_id: str, data: ReviewUpdate, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        review = await self.reviews.get_by_id(review_id)
        self._assert_author(review, actor, "update")
        changes = data.to_document(partial=True)
        if not changes:
            return review
        updated = await self.reviews.update_by_id(review["_id"], changes)
        if updated is None:
            raise self.reviews.not_found()
        if "rating" in changes:
            await self.recompute_product_rating(review["productId"])
        return updated

    @service_operation("service.review.delete", "DELETE_REVIEW_FAILED", "Failed to delete review")
    async def delete(self, review_id: str, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        review = await self.reviews.get_by_id(review_id)
        self._assert_author(review, actor, "delete")
        if await self.reviews.delete_by_id(review["_id"]) is None:
            raise self.reviews.not_found()
        rating = await self.recompute_product_rating(review["productId"])
        logger.info("Review deleted.", extra={"review_id": review_id, "rating_count": rating["count"]})
        return {"id": review["_id"]}
