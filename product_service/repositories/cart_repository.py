from typing import Any, List, Optional

from product_service.models import Cart
from product_service.repositories.base import BaseRepository
from product_service.schemas.common import to_object_id


class CartRepository(BaseRepository):
    collection_name = Cart.COLLECTION
    not_found_code = "CART_NOT_FOUND"
    entity_name = "Cart"

    async def find_by_user(self, user_id: Any) -> Optional[dict]:
        return await self.find_one({"userId": to_object_id(user_id) or user_id})

    async def create_for_user(self, user_id: Any) -> dict:
        return await self.create({"userId": to_object_id(user_id) or user_id, "items": []})

    async def replace_items(self, cart_id: Any, items: List[dict]) -> dict:
        cart = await self.update_by_id(cart_id, {"items": items})
        if cart is None:
            raise self.not_found()
        return cart
