from pydantic import Field

from product_service.models import Cart
from product_service.schemas.common import CamelModel, PyObjectId


class CartItemAdd(CamelModel):
    variant_id: PyObjectId
    quantity: int = Field(default=1, ge=1, le=Cart.MAX_ITEM_QUANTITY)


class CartItemUpdate(CamelModel):
    quantity: int = Field(ge=0, le=Cart.MAX_ITEM_QUANTITY)
