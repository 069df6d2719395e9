from typing import Optional

from fastapi import APIRouter, Depends, Query

from product_service.api.deps import get_category_service, path_id, require_roles, valid_id
from product_service.api.responses import success
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.category import CategoryCreate, CategoryUpdate
from product_service.services.category_service import CategoryService

router = APIRouter()

admin_only = require_roles("admin")


@router.post("/create", status_code=201)
async def create_category(
    data: CategoryCreate,
    user: CurrentUser = Depends(admin_only),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.create(data, user)
    return success(category, "Category created successfully", status_code=201)


@router.get("/getAll")
async def get_all_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    parent_category: Optional[str] = Query(None, alias="parentCategory"),
    q: Optional[str] = Query(None),
    service: CategoryService = Depends(get_category_service),
):
    if parent_category not in (None, "", "null"):
        valid_id(parent_category, "parentCategory")
    filters = {"isActive": is_active, "parentCategory": parent_category, "q": q}
    result = await service.get_all(filters, page, limit)
    return success(result, "Categories fetched successfully")


@router.get("/{id}")
async def get_category(id: str = Depends(path_id), service: CategoryService = Depends(get_category_service)):
    category = await service.get_by_id(id)
    return success(category, "Category fetched successfully")


@router.get("/{id}/tree")
async def get_category_tree(id: str = Depends(path_id), service: CategoryService = Depends(get_category_service)):
    tree = await service.get_tree(id)
    return success(tree, "Category tree fetched successfully")


@router.put("/{id}")
async def update_category(
    data: CategoryUpdate,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(admin_only),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.update(id, data, user)
    return success(category, "Category updated successfully")


@router.patch("/{id}/disable")
async def disable_category(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(admin_only),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.disable(id, user)
    return success(category, "Category disabled successfully")


@router.patch("/{id}/enable")
async def enable_category(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(admin_only),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.enable(id, user)
    return success(category, "Category enabled successfully")


@router.delete("/{id}")
async def delete_category(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(admin_only),
    service: CategoryService = Depends(get_category_service),
):
    result = await service.delete(id, user)
    return success(result, "Category deleted successfully")
