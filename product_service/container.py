"""Composition root: repositories, clients and services wired together once per process."""
from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from product_service.clients.auth_client import AuthClient
from product_service.clients.imagekit_client import ImageKitClient
from product_service.core.config import settings
from product_service.repositories.cart_repository import CartRepository
from product_service.repositories.category_repository import CategoryRepository
from product_service.repositories.inventory_repository import InventoryItemRepository
from product_service.repositories.order_repository import OrderRepository
from product_service.repositories.product_repository import ProductRepository
from product_service.repositories.review_repository import ReviewRepository
from product_service.repositories.storefront_repository import StorefrontRepository
from product_service.repositories.variant_repository import VariantRepository
from product_service.services.cart_service import CartService
from product_service.services.category_service import CategoryService
from product_service.services.inventory_service import InventoryItemService
from product_service.services.order_service import OrderService
from product_service.services.product_service import ProductService
from product_service.services.review_service import ReviewService
from product_service.services.storefront_service import StorefrontService
from product_service.services.upload_service import UploadService
from product_service.services.variant_service import VariantService


@dataclass
class ServiceContainer:
    db: AsyncIOMotorDatabase
    auth_client: AuthClient
    uploads: UploadService
    products: ProductService
    variants: VariantService
    inventory: InventoryItemService
    categories: CategoryService
    reviews: ReviewService
    storefront: StorefrontService
    carts: CartService
    orders: OrderService


def build_container(
    db: AsyncIOMotorDatabase,
    media_client=None,
    auth_client=None,
    name_uniqueness: Optional[str] = None,
) -> ServiceContainer:
    product_repository = ProductRepository(db)
    variant_repository = VariantRepository(db)
    inventory_repository = InventoryItemRepository(db)
    category_repository = CategoryRepository(db)
    review_repository = ReviewRepository(db)
    cart_repository = CartRepository(db)

    uploads = UploadService(media_client if media_client is not None else ImageKitClient())

    return ServiceContainer(
        db=db,
        auth_client=auth_client if auth_client is not None else AuthClient(),
        uploads=uploads,
        products=ProductService(
            product_repository,
            category_repository,
            uploads,
            name_uniqueness=name_uniqueness or settings.PRODUCT_NAME_UNIQUENESS,
        ),
        variants=VariantService(variant_repository, product_repository, uploads),
        inventory=InventoryItemService(inventory_repository, variant_repository, product_repository),
        categories=CategoryService(category_repository),
        reviews=ReviewService(review_repository, product_repository),
        storefront=StorefrontService(StorefrontRepository(db)),
        carts=CartService(cart_repository, variant_repository, product_repository),
        orders=OrderService(
            OrderRepository(db),
            cart_repository,
            variant_repository,
            product_repository,
            inventory_repository,
        ),
    )
