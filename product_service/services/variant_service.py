import logging
from typing import List, Optional, Sequence, Tuple

from bson import ObjectId
from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ApiError, InternalError, NotFoundError, ValidationError
from product_service.models import Variant
from product_service.repositories.product_repository import ProductRepository
from product_service.repositories.variant_repository import VariantRepository
from product_service.schemas.common import build_page_meta
from product_service.schemas.variant import VariantCreate, VariantUpdate
from product_service.services.base import (
    assert_can_manage,
    assert_product_active,
    require_actor,
    service_operation,
)
from product_service.services.upload_service import ImageFile, UploadService

logger = logging.getLogger(__name__)


class VariantService:
    def __init__(self, variants: VariantRepository, products: ProductRepository, uploads: UploadService):
        self.variants = variants
        self.products = products
        self.uploads = uploads
        self.tracer = trace.get_tracer("product_service.services.VariantService", "1.0.0")

    async def _load_for_mutation(
        self, variant_id: str, actor: Optional[CurrentUser], action: str, require_active: bool = True
    ) -> Tuple[CurrentUser, dict, dict]:
        actor = require_actor(actor)
        variant = await self.variants.get_by_id(variant_id)
        product = await self.products.find_by_id(variant["productId"])
        if product is None:
            raise NotFoundError("Associated product not found", code="PRODUCT_NOT_FOUND")
        assert_can_manage(actor, product, action)
        if require_active:
            assert_product_active(product, action)
        trace.get_current_span().set_attribute("app.variant.id", str(variant["_id"]))
        return actor, variant, product

    async def _ensure_unique_sku(self, product_id, sku: str, exclude_id=None):
        if await self.variants.find_by_sku_within_product(product_id, sku, exclude_id=exclude_id):
            raise ValidationError("Variant with this SKU already exists for this product", code="DUPLICATE_VARIANT_SKU")

    @service_operation("service.variant.create", "CREATE_VARIANT_ERROR", "Failed to create variant")
    async def create(self, data: VariantCreate, files: Sequence[ImageFile], actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        product = await self.products.get_by_id(data.product_id)
        assert_can_manage(actor, product, "create variant")
        assert_product_active(product, "add a variant")
        if data.sku:
            await self._ensure_unique_sku(product["_id"], data.sku)
        if not files and not data.variant_images:
            raise ValidationError("At least one variant image is required", code="NO_IMAGES")

        uploaded = await self.uploads.upload_images(files)
        variant_id = ObjectId()
        document = {
            **data.to_document(),
            "_id": variant_id,
            "productId": product["_id"],
            "sku": data.sku or Variant.generate_sku(product["_id"], variant_id),
        }
        if uploaded:
            document["variantImages"] = uploaded

        variant = await self.uploads.execute_with_upload_rollback(
            uploaded,
            lambda images: self.variants.create(document),
            rollback_log_code="VARIANT_CREATE_ROLLBACK",
        )
        logger.info("Variant created.", extra={"variant_id": str(variant_id), "product_id": str(product["_id"])})
        return variant

    @service_operation("service.variant.get_all", "FETCH_VARIANTS_FAILED", "Failed to fetch variants")
    async def get_all(self, filters: dict, sort: dict, page: int, limit: int) -> dict:
        result = await self.variants.find_all(filters, sort, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.variant.get_by_id", "FETCH_VARIANT_FAILED", "Failed to fetch variant")
    async def get_by_id(self, variant_id: str) -> dict:
        return await self.variants.get_by_id(variant_id)

    @service_operation("service.variant.get_by_product", "FETCH_VARIANTS_FAILED", "Failed to fetch variants")
    async def get_by_product(self, product_id: str) -> List[dict]:
        return await self.variants.find_by_product(product_id)

    @service_operation("service.variant.update", "UPDATE_VARIANT_ERROR", "Failed to update variant")
    async def update(
        self, variant_id: str, data: VariantUpdate, files: Sequence[ImageFile], actor: Optional[CurrentUser]
    ) -> dict:
        actor, variant, product = await self._load_for_mutation(variant_id, actor, "update variant")
        changes = data.to_document(partial=True)
        if changes.get("sku") and changes["sku"] != variant.get("sku"):
            await self._ensure_unique_sku(product["_id"], changes["sku"], exclude_id=variant["_id"])

        # only images uploaded by this request are rolled back
        uploaded = await self.uploads.upload_images(files)
        images = [*variant.get("variantImages", []), *changes.get("variantImages", []), *uploaded]
        if not images:
            raise ValidationError("At least one variant image is required", code="NO_IMAGES")
        changes["variantImages"] = images

        updated = await self.uploads.execute_with_upload_rollback(
            uploaded,
            lambda new_images: self.variants.update_by_id(variant["_id"], changes),
            rollback_log_code="VARIANT_UPDATE_ROLLBACK",
        )
        if updated is None:
            raise self.variants.not_found()
        return updated

    @service_operation("service.variant.update_image", "UPDATE_VARIANT_IMAGE_ERROR", "Failed to update variant image")
    async def update_image(
        self, variant_id: str, file_id: str, file: Optional[ImageFile], actor: Optional[CurrentUser]
    ) -> dict:
        """Replace the image identified by ``file_id``; returns the new image object."""
        actor = require_actor(actor)
        if file is None:
            raise ValidationError("Image file is required", code="NO_FILE")
        actor, variant, product = await self._load_for_mutation(variant_id, actor, "update variant image")

        images = list(variant.get("variantImages", []))
        index = next((i for i, image in enumerate(images) if image.get("fileId") == file_id), None)
        if index is None:
            raise NotFoundError("No variant image found with the provided fileId", code="VARIANT_IMAGE_NOT_FOUND")

        try:
            new_image = (await self.uploads.upload_images([file]))[0]
        except ApiError as e:
            raise InternalError("Failed to update variant image", code="UPDATE_VARIANT_IMAGE_ERROR", details=e.message) from e

        old_image = images[index]
        images[index] = new_image
        await self.uploads.execute_with_upload_rollback(
            [new_image],
            lambda uploaded: self.variants.update_by_id(variant["_id"], {"variantImages": images}),
            rollback_log_code="VARIANT_IMAGE_UPDATE_ROLLBACK",
        )
        await self.uploads.delete_images([old_image.get("fileId")], log_code="VARIANT_IMAGE_REPLACE_CLEANUP")
        return new_image

    @service_operation("service.variant.delete", "DELETE_VARIANT_ERROR", "Failed to delete variant")
    async def delete(self, variant_id: str, actor: Optional[CurrentUser]) -> dict:
        actor, variant, product = await self._load_for_mutation(variant_id, actor, "delete variant")
        if await self.variants.delete_by_id(variant["_id"]) is None:
            raise self.variants.not_found()
        file_ids = [image.get("fileId") for image in variant.get("variantImages", [])]
        failed = await self.uploads.delete_images(file_ids, log_code="VARIANT_DELETE_IMAGE_FAIL")
        logger.info("Variant deleted.", extra={"variant_id": variant_id, "orphaned_images": len(failed)})
        return {"id": variant["_id"], "orphanedFileIds": failed}

    async def _set_active(self, variant_id: str, actor: Optional[CurrentUser], active: bool) -> dict:
        verb = "enable" if active else "disable"
        actor, variant, product = await self._load_for_mutation(variant_id, actor, f"{verb} variant")
        if variant.get("isActive") is active:
            return variant
        return await self.variants.update_by_id(variant["_id"], {"isActive": active})

    @service_operation("service.variant.disable", "DISABLE_VARIANT_ERROR", "Failed to disable variant")
    async def disable(self, variant_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(variant_id, actor, False)

    @service_operation("service.variant.enable", "ENABLE_VARIANT_ERROR", "Failed to enable variant")
    async def enable(self, variant_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(variant_id, actor, True)
