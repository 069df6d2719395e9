import logging
from typing import Optional, Sequence

from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.config import settings
from product_service.core.errors import ApiError, ForbiddenError, InternalError, NotFoundError, ValidationError
from product_service.repositories.category_repository import CategoryRepository
from product_service.repositories.product_repository import ProductRepository
from product_service.schemas.common import build_page_meta, to_object_id
from product_service.schemas.product import ProductCreate, ProductUpdate
from product_service.services.base import assert_can_manage, is_privileged, require_actor, service_operation
from product_service.services.upload_service import ImageFile, UploadService

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(
        self,
        products: ProductRepository,
        categories: CategoryRepository,
        uploads: UploadService,
        name_uniqueness: str = settings.PRODUCT_NAME_UNIQUENESS,
    ):
        self.products = products
        self.categories = categories
        self.uploads = uploads
        self.name_uniqueness = name_uniqueness
        self.tracer = trace.get_tracer("product_service.services.ProductService", "1.0.0")

    async def _ensure_unique_name(self, name: str, seller_id, exclude_id=None):
        scope = seller_id if self.name_uniqueness == "seller" else None
        if await self.products.find_by_name(name, seller_id=scope, exclude_id=exclude_id):
            raise ValidationError("Product name must be unique", code="DUPLICATE_PRODUCT_NAME")

    async def _ensure_category(self, category_id):
        if await self.categories.find_by_id(category_id) is None:
            raise NotFoundError("Category not found", code="CATEGORY_NOT_FOUND")

    def _resolve_seller(self, data: ProductCreate, actor: CurrentUser):
        if actor.role == "seller":
            return to_object_id(actor.id) or actor.id
        if is_privileged(actor):
            if data.seller_id is None:
                raise ValidationError("sellerId is required when an admin creates a product", code="SELLER_ID_REQUIRED")
            return data.seller_id
        raise ForbiddenError("Insufficient permissions to create product", code="FORBIDDEN")

    @service_operation("service.product.create", "PRODUCT_PERSIST_FAILED", "Failed to persist product")
    async def create(self, data: ProductCreate, files: Sequence[ImageFile], actor: Optional[CurrentUser]) -> dict:
        actor = require_actor(actor)
        seller_id = self._resolve_seller(data, actor)
        await self._ensure_category(data.category_id)
        await self._ensure_unique_name(data.name, seller_id)

        if not files and not data.base_images:
            raise ValidationError("At least one product image is required", code="NO_IMAGES")

        uploaded = await self.uploads.upload_images(files)
        document = {**data.to_document(), "sellerId": seller_id}
        if uploaded:
            document["baseImages"] = uploaded

        product = await self.uploads.execute_with_upload_rollback(
            uploaded,
            lambda images: self.products.create(document),
            rollback_log_code="PRODUCT_CREATE_ROLLBACK",
        )
        trace.get_current_span().set_attribute("app.product.id", str(product["_id"]))
        logger.info("Product created.", extra={"product_id": str(product["_id"]), "seller_id": str(seller_id)})
        return product

    @service_operation("service.product.get_all", "FETCH_PRODUCTS_FAILED", "Failed to fetch products")
    async def get_all(self, params: dict, page: int, limit: int) -> dict:
        result = await self.products.search(params, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.product.get_by_id", "FETCH_PRODUCT_FAILED", "Failed to fetch product")
    async def get_by_id(self, product_id: str) -> dict:
        return await self.products.get_by_id(product_id)

    @service_operation("service.product.update", "UPDATE_PRODUCT_FAILED", "Failed to update product")
    async def update(
        self, product_id: str, data: ProductUpdate, files: Sequence[ImageFile], actor: Optional[CurrentUser]
    ) -> dict:
        actor = require_actor(actor)
        product = await self.products.get_by_id(product_id)
        assert_can_manage(
            actor, product, "update product", "UNAUTHORIZED_PRODUCT_UPDATE", "Unauthorized to update this product"
        )

        changes = data.to_document(partial=True)
        if "categoryId" in changes:
            await self._ensure_category(changes["categoryId"])
        if "name" in changes and changes["name"] != product.get("name"):
            await self._ensure_unique_name(changes["name"], product.get("sellerId"), exclude_id=product["_id"])

        uploaded = await self.uploads.upload_images(files)
        if uploaded or "baseImages" in changes:
            changes["baseImages"] = [*product.get("baseImages", []), *changes.get("baseImages", []), *uploaded]

        updated = await self.uploads.execute_with_upload_rollback(
            uploaded,
            lambda images: self.products.update_by_id(product["_id"], changes),
            rollback_log_code="PRODUCT_UPDATE_ROLLBACK",
        )
        if updated is None:
            raise self.products.not_found()
        logger.info("Product updated.", extra={"product_id": product_id, "fields": sorted(changes)})
        return updated

    @service_operation("service.product.update_image", "UPDATE_PRODUCT_IMAGE_FAILED", "Failed to update product image")
    async def update_image(
        self, product_id: str, file_id: str, file: Optional[ImageFile], actor: Optional[CurrentUser]
    ) -> dict:
        """Replace one base image; returns only the new image."""
        actor = require_actor(actor)
        if file is None:
            raise ValidationError("Image file is required", details=[{"field": "image", "message": "file is required"}])
        product = await self.products.get_by_id(product_id)
        assert_can_manage(
            actor, product, "update product", "UNAUTHORIZED_PRODUCT_UPDATE", "Unauthorized to update this product"
        )

        images = list(product.get("baseImages", []))
        index = next((i for i, image in enumerate(images) if image.get("fileId") == file_id), None)
        if index is None:
            raise NotFoundError("No product image found with the provided fileId", code="PRODUCT_IMAGE_NOT_FOUND")

        try:
            new_image = (await self.uploads.upload_images([file]))[0]
        except ApiError as e:
            raise InternalError("Failed to update product image", code="UPDATE_PRODUCT_IMAGE_FAILED", details=e.message) from e

        old_image = images[index]
        images[index] = new_image
        await self.uploads.execute_with_upload_rollback(
            [new_image],
            lambda uploaded: self.products.update_by_id(product["_id"], {"baseImages": images}),
            rollback_log_code="PRODUCT_IMAGE_UPDATE_ROLLBACK",
        )
        await self.uploads.delete_images([old_image.get("fileId")], log_code="PRODUCT_IMAGE_REPLACE_CLEANUP")
        return new_image

    async def _set_active(self, product_id: str, actor: Optional[CurrentUser], active: bool) -> dict:
        actor = require_actor(actor)
        product = await self.products.get_by_id(product_id)
        verb = "enable" if active else "disable"
        assert_can_manage(
            actor,
            product,
            f"{verb} product",
            f"UNAUTHORIZED_PRODUCT_{verb.upper()}",
            f"Unauthorized to {verb} this product",
        )
        if product.get("isActive") is active:
            return product
        updated = await self.products.update_by_id(product["_id"], {"isActive": active})
        logger.info(f"Product {verb}d.", extra={"product_id": product_id})
        return updated

    @service_operation("service.product.disable", "DISABLE_PRODUCT_FAILED", "Failed to disable product")
    async def disable(self, product_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(product_id, actor, False)

    @service_operation("service.product.enable", "ENABLE_PRODUCT_FAILED", "Failed to enable product")
    async def enable(self, product_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(product_id, actor, True)

    @service_operation("service.product.delete", "DELETE_PRODUCT_FAILED", "Failed to delete product")
    async def delete(self, product_id: str, actor: Optional[CurrentUser]) -> dict:
        """Hard delete; returns the id and any image fileIds the media host kept."""
        actor = require_actor(actor)
        product = await self.products.get_by_id(product_id)
        assert_can_manage(
            actor, product, "delete product", "UNAUTHORIZED_PRODUCT_DELETE", "Unauthorized to delete this product"
        )
        if await self.products.delete_by_id(product["_id"]) is None:
            raise self.products.not_found()
        file_ids = [image.get("fileId") for image in product.get("baseImages", [])]
        failed = await self.uploads.delete_images(file_ids, log_code="PRODUCT_DELETE_IMAGE_FAIL")
        logger.info("Product deleted.", extra={"product_id": product_id, "orphaned_images": len(failed)})
        return {"id": product["_id"], "orphanedFileIds": failed}
