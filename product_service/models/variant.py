from pymongo import ASCENDING, IndexModel


class Variant:
    COLLECTION = "productvariants"

    DEFAULT_CURRENCY = "INR"
    SKU_MAX_LENGTH = 120

    INDEXES = [
        IndexModel([("productId", ASCENDING), ("sku", ASCENDING)], unique=True, name="product_sku_unique"),
        IndexModel([("isActive", ASCENDING)], name="active"),
    ]

    @staticmethod
    def generate_sku(product_id, variant_id) -> str:
        """SKU used when the seller supplies none: tail of the product id + tail of the variant id."""
        return f"{str(product_id)[-6:]}-{str(variant_id)[-6:]}".upper()
