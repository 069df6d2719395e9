import logging
from typing import Optional

from bson import ObjectId
from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import NotFoundError, ValidationError
from product_service.repositories.cart_repository import CartRepository
from product_service.repositories.product_repository import ProductRepository
from product_service.repositories.variant_repository import VariantRepository
from product_service.schemas.cart import CartItemAdd
from product_service.schemas.common import to_object_id
from product_service.services.base import assert_product_active, require_actor, service_operation

logger = logging.getLogger(__name__)


class CartService:
    """One cart per user. Lines are edited in memory and written back as a whole list."""

    def __init__(self, carts: CartRepository, variants: VariantRepository, products: ProductRepository):
        self.carts = carts
        self.variants = variants
        self.products = products
        self.tracer = trace.get_tracer("product_service.services.CartService", "1.0.0")

    async def _require_cart(self, actor: CurrentUser) -> dict:
        cart = await self.carts.find_by_user(actor.id)
        if cart is None:
            raise self.carts.not_found()
        return cart

    @staticmethod
    def _line_index(cart: dict, item_id: str) -> int:
        oid = to_object_id(item_id)
        for index, line in enumerate(cart.get("items", [])):
            if line["_id"] == oid:
                return index
        raise NotFoundError("Cart item not found", code="CART_ITEM_NOT_FOUND")

    @service_operation("service.cart.get_or_create", "GET_CART_FAILED", "Failed to fetch cart")
    async def get_or_create(self, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        cart = await self.carts.find_by_user(actor.id)
        if cart is None:
            cart = await self.carts.create_for_user(actor.id)
            logger.info("Cart created.", extra={"cart_id": str(cart["_id"]), "user_id": actor.id})
        return cart

    @service_operation("service.cart.add_item", "ADD_ITEM_FAILED", "Failed to add item to cart")
    async def add_item(self, data: CartItemAdd, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        variant = await self.variants.find_by_id(data.variant_id)
        if variant is None:
            raise NotFoundError("Variant not found", code="VARIANT_NOT_FOUND")
        if variant.get("isActive") is False:
            raise ValidationError("Variant is not available", code="VARIANT_INACTIVE")
        product = await self.products.get_by_id(variant["productId"])
        assert_product_active(product, "add item to cart")

        cart = await self.get_or_create(actor)
        items = list(cart.get("items", []))
        for line in items:
            if line["variantId"] == variant["_id"]:
                line["quantity"] = data.quantity
                break
        else:
            items.append({"_id": ObjectId(), "variantId": variant["_id"], "quantity": data.quantity})

        trace.get_current_span().set_attribute("app.cart.lines", len(items))
        return await self.carts.replace_items(cart["_id"], items)

    @service_operation("service.cart.update_item", "UPDATE_ITEM_FAILED", "Failed to update cart item")
    async def update_item(self, item_id: str, quantity: int, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        cart = await self._require_cart(actor)
        index = self._line_index(cart, item_id)
        items = list(cart["items"])
        if quantity == 0:
            del items[index]
        else:
            items[index] = {**items[index], "quantity": quantity}
        return await self.carts.replace_items(cart["_id"], items)

    @service_operation("service.cart.remove_item", "REMOVE_ITEM_FAILED", "Failed to remove cart item")
    async def remove_item(self, item_id: str, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        cart = await self._require_cart(actor)
        index = self._line_index(cart, item_id)
        items = [line for position, line in enumerate(cart["items"]) if position != index]
        return await self.carts.replace_items(cart["_id"], items)

    @service_operation("service.cart.clear", "CLEAR_CART_FAILED", "Failed to clear cart")
    async def clear(self, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        cart = await self._require_cart(actor)
        cleared = await self.carts.replace_items(cart["_id"], [])
        logger.info("Cart cleared.", extra={"cart_id": str(cart["_id"]), "lines": len(cart.get("items", []))})
        return cleared
