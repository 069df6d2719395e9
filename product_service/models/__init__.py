from product_service.models.cart import Cart
from product_service.models.category import Category
from product_service.models.inventory import InventoryItem
from product_service.models.order import Order
from product_service.models.product import Product
from product_service.models.review import Review
from product_service.models.variant import Variant

ALL_MODELS = (Product, Variant, InventoryItem, Category, Review, Cart, Order)

__all__ = ["ALL_MODELS", "Cart", "Category", "InventoryItem", "Order", "Product", "Review", "Variant"]
