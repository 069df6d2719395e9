import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from product_service.api.deps import get_product_service, optional_id, path_id, require_roles
from product_service.api.responses import success
from product_service.api.uploads import read_payload, read_single_image
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.product import ProductCreate, ProductUpdate
from product_service.services.product_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter()

manage_products = require_roles("admin", "seller")


@router.post("/create", status_code=201)
async def create_product(
    request: Request,
    user: CurrentUser = Depends(manage_products),
    service: ProductService = Depends(get_product_service),
):
    data, files = await read_payload(request, ProductCreate)
    product = await service.create(data, files, user)
    return success(product, "Product created successfully", status_code=201)


@router.get("/getAll")
async def get_all_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    q: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None, alias="categoryId"),
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    brand: Optional[str] = Query(None),
    is_active: bool = Query(True, alias="isActive"),
    ids: Optional[str] = Query(None),
    created_from: Optional[datetime] = Query(None, alias="createdFrom"),
    created_to: Optional[datetime] = Query(None, alias="createdTo"),
    updated_from: Optional[datetime] = Query(None, alias="updatedFrom"),
    updated_to: Optional[datetime] = Query(None, alias="updatedTo"),
    fields: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    service: ProductService = Depends(get_product_service),
):
    params = {
        "q": q,
        "categoryId": optional_id(category_id, "categoryId"),
        "sellerId": optional_id(seller_id, "sellerId"),
        "brand": brand,
        "isActive": is_active,
        "ids": ids,
        "createdFrom": created_from,
        "createdTo": created_to,
        "updatedFrom": updated_from,
        "updatedTo": updated_to,
        "fields": fields,
        "sort": sort,
    }
    result = await service.get_all(params, page, limit)
    return success(result, "Products fetched successfully")


@router.get("/{id}")
async def get_product(id: str = Depends(path_id), service: ProductService = Depends(get_product_service)):
    product = await service.get_by_id(id)
    return success(product, "Product fetched successfully")


@router.put("/{id}")
async def update_product(
    request: Request,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_products),
    service: ProductService = Depends(get_product_service),
):
    data, files = await read_payload(request, ProductUpdate)
    product = await service.update(id, data, files, user)
    return success(product, "Product updated successfully")


@router.put("/{id}/images/{file_id}")
async def update_product_image(
    request: Request,
    file_id: str,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_products),
    service: ProductService = Depends(get_product_service),
):
    file = await read_single_image(request)
    image = await service.update_image(id, file_id, file, user)
    return success(image, "Product image updated successfully")


@router.patch("/{id}/disable")
async def disable_product(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_products),
    service: ProductService = Depends(get_product_service),
):
    product = await service.disable(id, user)
    return success(product, "Product disabled successfully")


@router.patch("/{id}/enable")
async def enable_product(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_products),
    service: ProductService = Depends(get_product_service),
):
    product = await service.enable(id, user)
    return success(product, "Product enabled successfully")


@router.delete("/{id}")
async def delete_product(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_products),
    service: ProductService = Depends(get_product_service),
):
    result = await service.delete(id, user)
    if result["orphanedFileIds"]:
        logger.warning("Product deleted with orphaned images.", extra={"product_id": id, "file_ids": result["orphanedFileIds"]})
    return success(result, "Product deleted successfully")
