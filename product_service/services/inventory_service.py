import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import NotFoundError, ValidationError
from product_service.repositories.inventory_repository import InventoryItemRepository
from product_service.repositories.product_repository import ProductRepository
from product_service.repositories.variant_repository import VariantRepository
from product_service.schemas.common import build_page_meta
from product_service.schemas.inventory import InventoryItemCreate, InventoryItemUpdate
from product_service.services.base import (
    assert_can_manage,
    assert_product_active,
    require_actor,
    service_operation,
)

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def merge_manufacturing_details(stored: Optional[dict], incoming: dict) -> dict:
    """Overlay the sent dates on the stored ones and check the resulting pair."""
    merged = {**(stored or {}), **incoming}
    mfg_date, exp_date = _as_utc(merged.get("mfgDate")), _as_utc(merged.get("expDate"))
    if mfg_date and exp_date and exp_date < mfg_date:
        raise ValidationError(
            "expDate must not be before mfgDate",
            details=[
                {
                    "field": "manufacturingDetails.expDate",
                    "message": "must not be before mfgDate",
                    "value": exp_date.isoformat(),
                }
            ],
        )
    return merged


class InventoryItemService:
    """Stock batches for variants. Ownership is inherited from the variant's product."""

    def __init__(self, items: InventoryItemRepository, variants: VariantRepository, products: ProductRepository):
        self.items = items
        self.variants = variants
        self.products = products
        self.tracer = trace.get_tracer("product_service.services.InventoryItemService", "1.0.0")

    async def _load_parents(self, variant_id) -> Tuple[dict, dict]:
        variant = await self.variants.find_by_id(variant_id)
        if variant is None:
            raise NotFoundError("Variant not found", code="VARIANT_NOT_FOUND")
        product = await self.products.find_by_id(variant.get("productId"))
        if product is None:
            raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
        return variant, product

    async def _load_for_mutation(self, item_id: str, actor: Optional[CurrentUser], action: str) -> Tuple[dict, dict]:
        actor = require_actor(actor)
        item = await self.items.get_by_id(item_id)
        variant, product = await self._load_parents(item.get("variantId"))
        assert_can_manage(actor, product, action)
        assert_product_active(product, action)
        span = trace.get_current_span()
        span.set_attribute("app.inventory_item.id", str(item["_id"]))
        span.set_attribute("app.variant.id", str(variant["_id"]))
        return item, variant

    async def _ensure_unique_batch(self, variant_id, batch_number: Optional[str], exclude_id=None):
        if batch_number and await self.items.find_by_batch(variant_id, batch_number, exclude_id=exclude_id):
            raise ValidationError(
                "Batch number already exists for this variant", code="DUPLICATE_BATCH_NUMBER"
            )

    @service_operation("service.inventory_item.create", "CREATE_INVENTORY_ERROR", "Failed to create inventory item")
    async def create(self, data: InventoryItemCreate, actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        variant, product = await self._load_parents(data.variant_id)
        assert_can_manage(actor, product, "create inventory item")
        assert_product_active(product, "add inventory")
        await self._ensure_unique_batch(variant["_id"], data.batch_number)

        document = {**data.to_document(), "variantId": variant["_id"]}
        if document.get("batchNumber") is None:
            # partial unique index only covers string batch numbers
            document.pop("batchNumber", None)
        item = await self.items.create(document)
        logger.info(
            "Inventory item created.",
            extra={"inventory_item_id": str(item["_id"]), "variant_id": str(variant["_id"])},
        )
        return item

    @service_operation("service.inventory_item.get_all", "FETCH_INVENTORY_ERROR", "Failed to fetch inventory items")
    async def get_all(self, filters: dict, sort: dict, page: int, limit: int) -> dict:
        result = await self.items.find_all(filters, sort, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.inventory_item.get_by_id", "FETCH_INVENTORY_ERROR", "Failed to fetch inventory item")
    async def get_by_id(self, item_id: str) -> dict:
        return await self.items.get_by_id(item_id)

    @service_operation("service.inventory_item.update", "UPDATE_INVENTORY_ERROR", "Failed to update inventory item")
    async def update(self, item_id: str, data: InventoryItemUpdate, actor: Optional[CurrentUser]) -> dict:
        item, variant = await self._load_for_mutation(item_id, actor, "update inventory item")
        changes = data.to_document(partial=True)
        if "manufacturingDetails" in changes:
            changes["manufacturingDetails"] = merge_manufacturing_details(
                item.get("manufacturingDetails"), changes["manufacturingDetails"]
            )
        if changes.get("batchNumber") and changes["batchNumber"] != item.get("batchNumber"):
            await self._ensure_unique_batch(variant["_id"], changes["batchNumber"], exclude_id=item["_id"])
        if not changes:
            return item
        updated = await self.items.update_by_id(item["_id"], changes)
        if updated is None:
            raise self.items.not_found()
        logger.info("Inventory item updated.", extra={"inventory_item_id": item_id, "fields": sorted(changes)})
        return updated

    @service_operation("service.inventory_item.delete", "DELETE_INVENTORY_ERROR", "Failed to delete inventory item")
    async def delete(self, item_id: str, actor: Optional[CurrentUser]) -> dict:
        item, variant = await self._load_for_mutation(item_id, actor, "delete inventory item")
        if await self.items.delete_by_id(item["_id"]) is None:
            raise self.items.not_found()
        logger.info("Inventory item deleted.", extra={"inventory_item_id": item_id})
        return {"id": item["_id"]}

    async def _set_active(self, item_id: str, actor: Optional[CurrentUser], active: bool) -> dict:
        verb = "enable" if active else "disable"
        item, variant = await self._load_for_mutation(item_id, actor, f"{verb} inventory item")
        if item.get("isActive") is active:
            return item
        return await self.items.update_by_id(item["_id"], {"isActive": active})

    @service_operation("service.inventory_item.disable", "DISABLE_INVENTORY_ERROR", "Failed to disable inventory item")
    async def disable(self, item_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(item_id, actor, False)

    @service_operation("service.inventory_item.enable", "ENABLE_INVENTORY_ERROR", "Failed to enable inventory item")
    async def enable(self, item_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(item_id, actor, True)
