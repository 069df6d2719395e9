import logging
from typing import Dict, List, Optional

from bson import ObjectId
from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ForbiddenError, NotFoundError, ValidationError
from product_service.models import Order
from product_service.repositories.base import utc_now
from product_service.repositories.cart_repository import CartRepository
from product_service.repositories.inventory_repository import InventoryItemRepository
from product_service.repositories.order_repository import OrderRepository
from product_service.repositories.product_repository import ProductRepository
from product_service.repositories.variant_repository import VariantRepository
from product_service.schemas.common import build_page_meta, to_object_id
from product_service.schemas.order import OrderCreate, OrderUpdate
from product_service.services.base import is_privileged, require_actor, service_operation

logger = logging.getLogger(__name__)


def merge_lines(lines: List[dict]) -> Dict[ObjectId, int]:
    """Sum quantities per variant, keeping first-seen order."""
    merged: Dict[ObjectId, int] = {}
    for line in lines:
        variant_id = to_object_id(line["variantId"])
        merged[variant_id] = merged.get(variant_id, 0) + int(line["quantity"])
    return merged


class OrderService:
    """Orders placed against live variants.

    Prices are snapshotted from the variant at creation time. Stock is only
    checked against the sellable inventory; nothing is decremented.
    """

    def __init__(
        self,
        orders: OrderRepository,
        carts: CartRepository,
        variants: VariantRepository,
        products: ProductRepository,
        inventory: InventoryItemRepository,
    ):
        self.orders = orders
        self.carts = carts
        self.variants = variants
        self.products = products
        self.inventory = inventory
        self.tracer = trace.get_tracer("product_service.services.OrderService", "1.0.0")

    def _assert_access(self, order: dict, actor: CurrentUser, action: str):
        if is_privileged(actor):
            return
        if str(order.get("userId")) != actor.id:
            raise ForbiddenError(f"You can only {action} your own orders", code="FORBIDDEN")

    async def _load_owned(self, order_id: str, actor: Optional[CurrentUser], action: str) -> dict:
        actor = require_actor(actor)
        order = await self.orders.get_by_id(order_id)
        self._assert_access(order, actor, action)
        trace.get_current_span().set_attribute("app.order.id", str(order["_id"]))
        return order

    async def _price_line(self, variant_id: ObjectId, quantity: int) -> dict:
        variant = await self.variants.find_by_id(variant_id)
        if variant is None:
            raise NotFoundError("Variant not found", code="VARIANT_NOT_FOUND", details={"variantId": str(variant_id)})
        if variant.get("isActive") is False:
            raise ValidationError("Variant is not available", code="VARIANT_INACTIVE", details={"variantId": str(variant_id)})
        product = await self.products.find_by_id(variant.get("productId"))
        if product is None:
            raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
        if product.get("isActive") is False:
            raise ValidationError(
                "Cannot order product: product is inactive",
                code="PRODUCT_INACTIVE",
                details={"productId": str(product["_id"])},
            )
        available = await self.inventory.sellable_stock(variant_id)
        if available < quantity:
            raise ValidationError(
                "Insufficient stock",
                code="INSUFFICIENT_STOCK",
                details={"variantId": str(variant_id), "requested": quantity, "available": available},
            )
        price = variant.get("price") or {}
        return {
            "_id": ObjectId(),
            "variantId": variant["_id"],
            "productId": product["_id"],
            "sku": variant.get("sku"),
            "quantity": quantity,
            "price": price.get("amount", 0),
            "currency": price.get("currency"),
        }

    @service_operation("service.order.create", "CREATE_ORDER_FAILED", "Failed to create order")
    async def create(self, data: OrderCreate, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        cart = None
        if data.items:
            lines = [{"variantId": item.variant_id, "quantity": item.quantity} for item in data.items]
        else:
            cart = await self.carts.find_by_user(actor.id)
            lines = cart.get("items", []) if cart else []
        if not lines:
            raise ValidationError("Order has no items", code="EMPTY_ORDER")

        items = [await self._price_line(variant_id, quantity) for variant_id, quantity in merge_lines(lines).items()]
        currencies = {item.pop("currency") for item in items}
        if len(currencies) > 1:
            raise ValidationError(
                "All items in an order must share one currency",
                code="MIXED_CURRENCY",
                details={"currencies": sorted(str(currency) for currency in currencies)},
            )

        total = round(sum(item["price"] * item["quantity"] for item in items), 2)
        document = {
            "userId": to_object_id(actor.id) or actor.id,
            "items": items,
            "totalAmount": total,
            "currency": currencies.pop(),
            "status": Order.PENDING,
            "notes": data.notes,
            "cancelledAt": None,
        }
        if data.shipping_address is not None:
            document["shippingAddress"] = data.shipping_address.to_document()
        order = await self.orders.create(document)

        if cart is not None:
            await self.carts.replace_items(cart["_id"], [])
        span = trace.get_current_span()
        span.set_attribute("app.order.id", str(order["_id"]))
        span.set_attribute("app.order.total", total)
        logger.info(
            "Order created.",
            extra={"order_id": str(order["_id"]), "lines": len(items), "total": total, "from_cart": cart is not None},
        )
        return order

    @service_operation("service.order.get_all", "LIST_ORDERS_FAILED", "Failed to fetch orders")
    async def get_all(self, filters: dict, page: int, limit: int, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        filters = dict(filters)
        if not is_privileged(actor):
            filters["userId"] = actor.id
        result = await self.orders.find_all(filters, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.order.get_by_id", "GET_ORDER_FAILED", "Failed to fetch order")
    async def get_by_id(self, order_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._load_owned(order_id, actor, "view")

    @service_operation("service.order.update", "UPDATE_ORDER_FAILED", "Failed to update order")
    async def update(self, order_id: str, data: OrderUpdate, actor: Optional[CurrentUser]) -> dict:
        order = await self._load_owned(order_id, actor, "update")
        if order.get("status") not in Order.EDITABLE_STATUSES:
            raise ValidationError(
                f"Order can no longer be edited (status: {order.get('status')})", code="ORDER_NOT_EDITABLE"
            )
        changes = data.to_document(partial=True)
        if not changes:
            return order
        updated = await self.orders.update_by_id(order["_id"], changes)
        if updated is None:
            raise self.orders.not_found()
        return updated

    @service_operation("service.order.update_status", "UPDATE_ORDER_STATUS_FAILED", "Failed to update order status")
    async def update_status(self, order_id: str, status: str, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        if not is_privileged(actor):
            raise ForbiddenError("Insufficient permissions to update order status", code="FORBIDDEN")
        order = await self.orders.get_by_id(order_id)
        current = order.get("status")
        if current == status:
            return order
        if not Order.can_transition(current, status):
            raise ValidationError(
                f"Cannot move order from {current} to {status}",
                code="INVALID_STATUS_TRANSITION",
                details={"from": current, "to": status},
            )
        changes = {"status": status}
        if status == Order.CANCELLED:
            changes["cancelledAt"] = utc_now()
        updated = await self.orders.update_by_id(order["_id"], changes)
        if updated is None:
            raise self.orders.not_found()
        logger.info("Order status changed.", extra={"order_id": order_id, "from": current, "to": status})
        return updated

    @service_operation("service.order.cancel", "CANCEL_ORDER_FAILED", "Failed to cancel order")
    async def cancel(self, order_id: str, actor: Optional[CurrentUser]) -> dict:
        order = await self._load_owned(order_id, actor, "cancel")
        if order.get("status") == Order.CANCELLED:
            return order
        if not Order.can_transition(order.get("status"), Order.CANCELLED):
            raise ValidationError(
                f"Order cannot be cancelled (status: {order.get('status')})", code="ORDER_NOT_CANCELLABLE"
            )
        updated = await self.orders.update_by_id(order["_id"], {"status": Order.CANCELLED, "cancelledAt": utc_now()})
        if updated is None:
            raise self.orders.not_found()
        logger.info("Order cancelled.", extra={"order_id": order_id})
        return updated
