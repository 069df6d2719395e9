import logging
from typing import Optional

from opentelemetry import trace

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ForbiddenError, NotFoundError, ValidationError
from product_service.repositories.category_repository import CategoryRepository
from product_service.schemas.category import CategoryCreate, CategoryUpdate
from product_service.schemas.common import build_page_meta
from product_service.services.base import is_privileged, require_actor, service_operation

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, categories: CategoryRepository):
        self.categories = categories
        self.tracer = trace.get_tracer("product_service.services.CategoryService", "1.0.0")

    def _require_admin(self, actor: Optional[CurrentUser], action: str) -> CurrentUser:
        actor = require_actor(actor)
        if not is_privileged(actor):
            raise ForbiddenError(f"Only admins can {action}", code="FORBIDDEN")
        return actor

    async def _ensure_unique_name(self, name: str, exclude_id=None):
        existing = await self.categories.find_by_name(name)
        if existing is not None and existing["_id"] != exclude_id:
            raise ValidationError("Category name already exists", code="DUPLICATE_CATEGORY_NAME")

    async def _load_parent(self, parent_id) -> dict:
        parent = await self.categories.find_by_id(parent_id)
        if parent is None:
            raise NotFoundError("Parent category not found", code="PARENT_CATEGORY_NOT_FOUND")
        return parent

    @service_operation("service.category.create", "CREATE_CATEGORY_FAILED", "Failed to create category")
    async def create(self, data: CategoryCreate, actor: Optional[CurrentUser]) -> dict:
        self._require_admin(actor, "create categories")
        await self._ensure_unique_name(data.name)

        ancestors = []
        if data.parent_category is not None:
            parent = await self._load_parent(data.parent_category)
            ancestors = [*parent.get("ancestors", []), parent["_id"]]

        document = {
            "name": data.name,
            "description": data.description,
            "parentCategory": data.parent_category,
            "ancestors": ancestors,
            "isActive": True,
        }
        category = await self.categories.create(document)
        logger.info("Category created.", extra={"category_id": str(category["_id"]), "depth": len(ancestors)})
        return category

    @service_operation("service.category.get_all", "FETCH_CATEGORIES_FAILED", "Failed to fetch categories")
    async def get_all(self, filters: dict, page: int, limit: int) -> dict:
        result = await self.categories.search(filters, page, limit)
        return {"items": result["items"], "meta": build_page_meta(result["total"], page, limit)}

    @service_operation("service.category.get_by_id", "FETCH_CATEGORY_FAILED", "Failed to fetch category")
    async def get_by_id(self, category_id: str) -> dict:
        return await self.categories.get_by_id(category_id)

    @service_operation("service.category.get_tree", "FETCH_CATEGORY_TREE_FAILED", "Failed to fetch category tree")
    async def get_tree(self, category_id: str) -> dict:
        return await self.categories.get_tree(category_id)

    @service_operation("service.category.update", "UPDATE_CATEGORY_FAILED", "Failed to update category")
    async def update(self, category_id: str, data: CategoryUpdate, actor: Optional[CurrentUser]) -> dict:
        """Update fields; a parent change recomputes ancestors for the whole subtree."""
        self._require_admin(actor, "update categories")
        category = await self.categories.get_by_id(category_id)
        changes = data.to_document(partial=True, nullable=("parentCategory",))

        if "name" in changes and changes["name"] != category.get("name"):
            await self._ensure_unique_name(changes["name"], exclude_id=category["_id"])

        moved = "parentCategory" in changes and changes["parentCategory"] != category.get("parentCategory")
        if moved:
            new_parent_id = changes["parentCategory"]
            new_ancestors = []
            if new_parent_id is not None:
                parent = await self._load_parent(new_parent_id)
                if parent["_id"] == category["_id"] or category["_id"] in parent.get("ancestors", []):
                    raise ValidationError(
                        "A category cannot be moved under itself or its descendants", code="INVALID_PARENT_CATEGORY"
                    )
                new_ancestors = [*parent.get("ancestors", []), parent["_id"]]
            changes["ancestors"] = new_ancestors
        elif "parentCategory" in changes:
            changes.pop("parentCategory")

        if not changes:
            return category
        updated = await self.categories.update_by_id(category["_id"], changes)
        if updated is None:
            raise self.categories.not_found()

        if moved:
            old_prefix = [*category.get("ancestors", []), category["_id"]]
            new_prefix = [*changes["ancestors"], category["_id"]]
            rewritten = await self.categories.replace_ancestor_prefix(category["_id"], old_prefix, new_prefix)
            logger.info("Category moved.", extra={"category_id": category_id, "descendants_rewritten": rewritten})
        return updated

    @service_operation("service.category.delete", "DELETE_CATEGORY_FAILED", "Failed to delete category")
    async def delete(self, category_id: str, actor: Optional[CurrentUser]) -> dict:
        self._require_admin(actor, "delete categories")
        deleted = await self.categories.delete_by_id(category_id)
        if deleted is None:
            raise self.categories.not_found()
        # children keep their parentCategory reference
        logger.info("Category deleted.", extra={"category_id": category_id})
        return {"id": deleted["_id"]}

    async def _set_active(self, category_id: str, actor: Optional[CurrentUser], active: bool) -> dict:
        verb = "enable" if active else "disable"
        self._require_admin(actor, f"{verb} categories")
        category = await self.categories.get_by_id(category_id)
        if category.get("isActive") is active:
            return category
        return await self.categories.update_by_id(category["_id"], {"isActive": active})

    @service_operation("service.category.disable", "DISABLE_CATEGORY_FAILED", "Failed to disable category")
    async def disable(self, category_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(category_id, actor, False)

    @service_operation("service.category.enable", "ENABLE_CATEGORY_FAILED", "Failed to enable category")
    async def enable(self, category_id: str, actor: Optional[CurrentUser]) -> dict:
        return await self._set_active(category_id, actor, True)
