from typing import Annotated, List, Optional

from pydantic import AfterValidator, Field

from product_service.models import Product
from product_service.schemas.common import CamelModel, Image, PyObjectId


def _clean_attributes(value: List[str]) -> List[str]:
    cleaned = [item.strip() for item in value]
    if any(not item for item in cleaned):
        raise ValueError("attributes must be non-empty strings")
    return cleaned


Attributes = Annotated[List[str], Field(min_length=1), AfterValidator(_clean_attributes)]


class ProductCreate(CamelModel):
    name: str = Field(min_length=Product.NAME_MIN_LENGTH, max_length=Product.NAME_MAX_LENGTH)
    description: str = Field(min_length=Product.DESCRIPTION_MIN_LENGTH, max_length=Product.DESCRIPTION_MAX_LENGTH)
    brand: Optional[str] = Field(default=None, max_length=Product.BRAND_MAX_LENGTH)
    category_id: PyObjectId
    seller_id: Optional[PyObjectId] = None
    attributes: Attributes
    base_images: List[Image] = []
    is_active: bool = True


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=Product.NAME_MIN_LENGTH, max_length=Product.NAME_MAX_LENGTH)
    description: Optional[str] = Field(
        default=None, min_length=Product.DESCRIPTION_MIN_LENGTH, max_length=Product.DESCRIPTION_MAX_LENGTH
    )
    brand: Optional[str] = Field(default=None, max_length=Product.BRAND_MAX_LENGTH)
    category_id: Optional[PyObjectId] = None
    attributes: Optional[Attributes] = None
    base_images: Optional[List[Image]] = None
