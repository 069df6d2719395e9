from fastapi import APIRouter

from product_service.api.endpoints import (
    cart,
    categories,
    inventory_items,
    orders,
    products,
    reviews,
    storefront,
    variants,
)

api_router = APIRouter()
api_router.include_router(products.router, prefix="/product", tags=["products"])
api_router.include_router(variants.router, prefix="/variant", tags=["variants"])
api_router.include_router(inventory_items.router, prefix="/inventory-item", tags=["inventory"])
api_router.include_router(categories.router, prefix="/category", tags=["categories"])
api_router.include_router(reviews.router, prefix="/review", tags=["reviews"])
api_router.include_router(storefront.router, prefix="/storefront", tags=["storefront"])
api_router.include_router(cart.router, prefix="/cart", tags=["cart"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
