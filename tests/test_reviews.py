"""
Reviews keep the product's denormalized rating in step with the review rows.
"""

import pytest
from bson import ObjectId

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ForbiddenError, ValidationError
from product_service.schemas.review import ReviewCreate, ReviewUpdate

from tests.conftest import seed_product


def _shopper():
    return CurrentUser(id=str(ObjectId()), role="user")


async def _rating(container, product_id):
    product = await container.products.get_by_id(str(product_id))
    return product["rating"]


class TestRatingAggregate:
    @pytest.mark.asyncio
    async def test_new_product_starts_at_zero(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        assert await _rating(container, product["_id"]) == {"average": 0, "count": 0}

    @pytest.mark.asyncio
    async def test_average_and_count_follow_creates_and_deletes(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        authors = [_shopper() for _ in range(3)]
        reviews = []
        for author, stars in zip(authors, [5, 4, 2]):
            reviews.append(
                await container.reviews.create(ReviewCreate(productId=product["_id"], rating=stars), author)
            )

        rating = await _rating(container, product["_id"])
        assert rating["count"] == 3
        assert rating["average"] == pytest.approx(11 / 3)

        await container.reviews.delete(str(reviews[0]["_id"]), authors[0])
        rating = await _rating(container, product["_id"])
        assert rating["count"] == 2
        assert rating["average"] == pytest.approx(3)

        for review, author in zip(reviews[1:], authors[1:]):
            await container.reviews.delete(str(review["_id"]), author)
        assert await _rating(container, product["_id"]) == {"average": 0, "count": 0}

    @pytest.mark.asyncio
    async def test_rating_change_recomputes(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        author = _shopper()
        review = await container.reviews.create(ReviewCreate(productId=product["_id"], rating=1), author)

        await container.reviews.update(str(review["_id"]), ReviewUpdate(rating=5), author)

        assert await _rating(container, product["_id"]) == {"average": 5, "count": 1}


class TestReviewRules:
    @pytest.mark.asyncio
    async def test_one_review_per_user(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        author = _shopper()
        await container.reviews.create(ReviewCreate(productId=product["_id"], rating=4), author)

        with pytest.raises(ValidationError) as exc_info:
            await container.reviews.create(ReviewCreate(productId=product["_id"], rating=2), author)
        assert exc_info.value.code == "DUPLICATE_REVIEW"

    @pytest.mark.asyncio
    async def test_inactive_product_cannot_be_reviewed(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        await container.products.disable(str(product["_id"]), admin)

        with pytest.raises(ValidationError) as exc_info:
            await container.reviews.create(ReviewCreate(productId=product["_id"], rating=3), _shopper())
        assert exc_info.value.code == "PRODUCT_INACTIVE"

    @pytest.mark.asyncio
    async def test_only_author_may_edit_or_delete(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        review = await container.reviews.create(ReviewCreate(productId=product["_id"], rating=3), _shopper())

        with pytest.raises(ForbiddenError):
            await container.reviews.update(str(review["_id"]), ReviewUpdate(comment="edited"), _shopper())
        with pytest.raises(ForbiddenError):
            await container.reviews.delete(str(review["_id"]), _shopper())

    @pytest.mark.asyncio
    async def test_get_by_product_is_newest_first(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        first = await container.reviews.create(ReviewCreate(productId=product["_id"], rating=3), _shopper())
        second = await container.reviews.create(ReviewCreate(productId=product["_id"], rating=4), _shopper())

        result = await container.reviews.get_by_product(str(product["_id"]))

        assert result["meta"]["total"] == 2
        assert [review["_id"] for review in result["items"]] == [second["_id"], first["_id"]]
