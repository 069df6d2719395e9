from fastapi import APIRouter, Depends

from product_service.api.deps import get_cart_service, get_current_user, valid_id
from product_service.api.responses import success
from product_service.clients.auth_client import CurrentUser
from product_service.schemas.cart import CartItemAdd, CartItemUpdate
from product_service.services.cart_service import CartService

router = APIRouter()


@router.get("")
async def get_cart(user: CurrentUser = Depends(get_current_user), service: CartService = Depends(get_cart_service)):
    cart = await service.get_or_create(user)
    return success(cart, "Cart fetched successfully")


@router.post("/items")
async def add_cart_item(
    data: CartItemAdd,
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.add_item(data, user)
    return success(cart, "Item added to cart")


@router.patch("/items/{item_id}")
async def update_cart_item(
    item_id: str,
    data: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.update_item(valid_id(item_id, "itemId"), data.quantity, user)
    return success(cart, "Cart item updated")


@router.delete("/items/{item_id}")
async def remove_cart_item(
    item_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.remove_item(valid_id(item_id, "itemId"), user)
    return success(cart, "Item removed from cart")


@router.delete("/clear")
async def clear_cart(user: CurrentUser = Depends(get_current_user), service: CartService = Depends(get_cart_service)):
    cart = await service.clear(user)
    return success(cart, "Cart cleared")
