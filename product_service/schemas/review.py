from typing import Optional

from pydantic import Field

from product_service.models import Review
from product_service.schemas.common import CamelModel, PyObjectId


class ReviewCreate(CamelModel):
    product_id: PyObjectId
    rating: int = Field(ge=Review.MIN_RATING, le=Review.MAX_RATING)
    comment: str = Field(default="", max_length=Review.COMMENT_MAX_LENGTH)


class ReviewUpdate(CamelModel):
    rating: Optional[int] = Field(default=None, ge=Review.MIN_RATING, le=Review.MAX_RATING)
    comment: Optional[str] = Field(default=None, max_length=Review.COMMENT_MAX_LENGTH)
