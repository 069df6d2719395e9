from typing import Optional

from pydantic import Field

from product_service.models import Category
from product_service.schemas.common import CamelModel, PyObjectId


class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=Category.NAME_MAX_LENGTH)
    description: str = Field(default="", max_length=Category.DESCRIPTION_MAX_LENGTH)
    parent_category: Optional[PyObjectId] = None


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=Category.NAME_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=Category.DESCRIPTION_MAX_LENGTH)
    parent_category: Optional[PyObjectId] = None
    is_active: Optional[bool] = None
