from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from product_service.api.deps import get_inventory_service, optional_id, path_id, require_roles
from product_service.api.responses import success
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.inventory import InventoryItemCreate, InventoryItemUpdate, InventoryStatus
from product_service.services.inventory_service import InventoryItemService

router = APIRouter()

manage_inventory = require_roles("admin", "seller")
read_inventory = require_roles("admin", "seller", "user")


@router.post("/create", status_code=201)
async def create_inventory_item(
    data: InventoryItemCreate,
    user: CurrentUser = Depends(manage_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    item = await service.create(data, user)
    return success(item, "Inventory item created successfully", status_code=201)


@router.get("/getAll")
async def get_all_inventory_items(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    variant_id: Optional[str] = Query(None, alias="variantId"),
    batch_number: Optional[str] = Query(None, alias="batchNumber"),
    status: Optional[InventoryStatus] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    min_stock: Optional[int] = Query(None, alias="minStock", ge=0),
    max_stock: Optional[int] = Query(None, alias="maxStock", ge=0),
    mfg_date_from: Optional[datetime] = Query(None, alias="mfgDateFrom"),
    mfg_date_to: Optional[datetime] = Query(None, alias="mfgDateTo"),
    exp_date_from: Optional[datetime] = Query(None, alias="expDateFrom"),
    exp_date_to: Optional[datetime] = Query(None, alias="expDateTo"),
    exclude_expired: Optional[bool] = Query(None, alias="excludeExpired"),
    product_name: Optional[str] = Query(None, alias="productName"),
    sku: Optional[str] = Query(None),
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user: CurrentUser = Depends(read_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    filters = {
        "variantId": optional_id(variant_id, "variantId"),
        "batchNumber": batch_number,
        "status": status,
        "isActive": is_active,
        "inStock": in_stock,
        "minPrice": min_price,
        "maxPrice": max_price,
        "minStock": min_stock,
        "maxStock": max_stock,
        "mfgDateFrom": mfg_date_from,
        "mfgDateTo": mfg_date_to,
        "expDateFrom": exp_date_from,
        "expDateTo": exp_date_to,
        "excludeExpired": exclude_expired,
        "productName": product_name,
        "sku": sku,
        "sellerId": optional_id(seller_id, "sellerId"),
    }
    result = await service.get_all(filters, {"sortBy": sort_by, "sortOrder": sort_order}, page, limit)
    return success(result, "Inventory items fetched successfully")


@router.get("/{id}")
async def get_inventory_item(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(read_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    item = await service.get_by_id(id)
    return success(item, "Inventory item fetched successfully")


@router.put("/{id}")
async def update_inventory_item(
    data: InventoryItemUpdate,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    item = await service.update(id, data, user)
    return success(item, "Inventory item updated successfully")


@router.patch("/{id}/disable")
async def disable_inventory_item(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    item = await service.disable(id, user)
    return success(item, "Inventory item disabled successfully")


@router.patch("/{id}/enable")
async def enable_inventory_item(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    item = await service.enable(id, user)
    return success(item, "Inventory item enabled successfully")


@router.delete("/{id}")
async def delete_inventory_item(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(manage_inventory),
    service: InventoryItemService = Depends(get_inventory_service),
):
    result = await service.delete(id, user)
    return success(result, "Inventory item deleted successfully")
