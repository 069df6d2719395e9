from typing import List, Literal, Optional

from pydantic import Field

from product_service.models import Cart, Order
from product_service.schemas.common import CamelModel, PyObjectId

OrderStatus = Literal[Order.STATUSES]


class ShippingAddress(CamelModel):
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(default="", max_length=100)
    zip_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=60)


class OrderItemCreate(CamelModel):
    variant_id: PyObjectId
    quantity: int = Field(ge=1, le=Cart.MAX_ITEM_QUANTITY)


class OrderCreate(CamelModel):
    """Without ``items`` the order is placed from the caller's cart."""

    items: List[OrderItemCreate] = []
    shipping_address: Optional[ShippingAddress] = None
    notes: str = Field(default="", max_length=Order.NOTES_MAX_LENGTH)


class OrderUpdate(CamelModel):
    shipping_address: Optional[ShippingAddress] = None
    notes: Optional[str] = Field(default=None, max_length=Order.NOTES_MAX_LENGTH)


class OrderStatusUpdate(CamelModel):
    status: OrderStatus
