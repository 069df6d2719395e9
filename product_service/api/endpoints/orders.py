from typing import Optional

from fastapi import APIRouter, Depends, Query

from product_service.api.deps import get_current_user, get_order_service, optional_id, path_id, require_roles
from product_service.api.responses import success
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.order import OrderCreate, OrderStatus, OrderStatusUpdate, OrderUpdate
from product_service.services.order_service import OrderService

router = APIRouter()


@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.create(data, user)
    return success(order, "Order placed successfully", status_code=201)


@router.get("")
async def get_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    filters = {"status": status, "userId": optional_id(user_id, "userId")}
    result = await service.get_all(filters, page, limit, user)
    return success(result, "Orders fetched successfully")


@router.get("/{id}")
async def get_order(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.get_by_id(id, user)
    return success(order, "Order fetched successfully")


@router.patch("/{id}")
async def update_order(
    data: OrderUpdate,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update(id, data, user)
    return success(order, "Order updated successfully")


@router.patch("/{id}/status")
async def update_order_status(
    data: OrderStatusUpdate,
    id: str = Depends(path_id),
    user: CurrentUser = Depends(require_roles("admin")),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_status(id, data.status, user)
    return success(order, "Order status updated successfully")


@router.delete("/{id}")
async def cancel_order(
    id: str = Depends(path_id),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.cancel(id, user)
    return success(order, "Order cancelled successfully")
