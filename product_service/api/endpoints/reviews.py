from typing import Optional

from fastapi import APIRouter, Depends, Query

from product_service.api.deps import get_current_user, get_review_service, optional_id, path_id, valid_id
from product_service.api.responses import success
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.review import ReviewCreate, ReviewUpdate
from product_service.services.review_service import ReviewService

router = APIRouter()


@router.post("/create", status_code=201)
async def create_review(
    data: ReviewCreate,
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.create(data, user)
    return success(review, "Review created successfully", status_code=201)


@router.get("/getAll")
async def get_all_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    product_id: Optional[str] = Query(None, alias="productId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    min_rating: Optional[int] = Query(None, alias="minRating", ge=1, le=5),
    service: ReviewService = Depends(get_review_service),
):
    filters = {
        "productId": optional_id(product_id, "productId"),
        "userId": optional_id(user_id, "userId"),
        "rating": rating,
        "minRating": min_rating,
    }
    result = await service.get_all(filters, page, limit)
    return success(result, "Reviews fetched successfully")


@router.get("/product/{product_id}")
async def get_reviews_by_product(
    product_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ReviewService = Depends(get_review_service),
):
    result = await service.get_by_product(valid_id(product_id, "productId"), page, limit)
    return success(result, "Reviews fetched successfully")


@router.get("/{id}")
async def get_review(id: str = Depends(path_id), service: ReviewService = Depends(get_review_service)):
    review = await service.get_by_id(id)
    return success(review, "Review fetched successfully")


@router.put("/{id}")
async def update_review(
    data: ReviewUpdate,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.update(id, data, user)
    return success(review, "Review updated successfully")


@router.delete("/{id}")
async def delete_review(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    result = await service.delete(id, user)
    return success(result, "Review deleted successfully")
