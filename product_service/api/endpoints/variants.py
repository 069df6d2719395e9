from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from product_service.api.deps import get_variant_service, optional_id, path_id, require_roles, valid_id
from product_service.api.responses import success
from product_service.api.uploads import read_payload, read_single_image
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.variant import VariantCreate, VariantUpdate
from product_service.services.variant_service import VariantService

router = APIRouter()

manage_variants = require_roles("admin", "seller")


@router.post("/create", status_code=201)
async def create_variant(
    request: Request,
    user: CurrentUser = Depends(manage_variants),
    service: VariantService = Depends(get_variant_service),
):
    data, files = await read_payload(request, VariantCreate)
    variant = await service.create(data, files, user)
    return success(variant, "Variant created successfully", status_code=201)


@router.get("/getAll")
async def get_all_variants(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    product_id: Optional[str] = Query(None, alias="productId"),
    sku: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    base_unit: Optional[str] = Query(None, alias="baseUnit"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    service: VariantService = Depends(get_variant_service),
):
    filters = {
        "productId": optional_id(product_id, "productId"),
        "sku": sku,
        "q": q,
        "isActive": is_active,
        "minPrice": min_price,
        "maxPrice": max_price,
        "currency": currency,
        "baseUnit": base_unit,
    }
    result = await service.get_all(filters, {"sortBy": sort_by, "sortOrder": sort_order}, page, limit)
    return success(result, "Variants fetched successfully")


@router.get("/product/{product_id}")
async def get_variants_by_product(product_id: str, service: VariantService = Depends(get_variant_service)):
    variants = await service.get_by_product(valid_id(product_id, "productId"))
    return success(variants, "Variants fetched successfully")


@router.get("/{id}")
async def get_variant(id: str = Depends(path_id), service: VariantService = Depends(get_variant_service)):
    variant = await service.get_by_id(id)
    return success(variant, "Variant fetched successfully")


@router.put("/{id}")
async def update_variant(
    request: Request,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_variants),
    service: VariantService = Depends(get_variant_service),
):
    data, files = await read_payload(request, VariantUpdate)
    variant = await service.update(id, data, files, user)
    return success(variant, "Variant updated successfully")


@router.put("/{id}/images/{file_id}")
async def update_variant_image(
    request: Request,
    file_id: str,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_variants),
    service: VariantService = Depends(get_variant_service),
):
    file = await read_single_image(request)
    image = await service.update_image(id, file_id, file, user)
    return success(image, "Variant image updated successfully")


@router.patch("/{id}/disable")
async def disable_variant(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_variants),
    service: VariantService = Depends(get_variant_service),
):
    variant = await service.disable(id, user)
    return success(variant, "Variant disabled successfully")


@router.patch("/{id}/enable")
async def enable_variant(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_variants),
    service: VariantService = Depends(get_variant_service),
):
    variant = await service.enable(id, user)
    return success(variant, "Variant enabled successfully")


@router.delete("/{id}")
async def delete_variant(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_variants),
    service: VariantService = Depends(get_variant_service),
):
    result = await service.delete(id, user)
    return success(result, "Variant deleted successfully")
