from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel


class Product:
    COLLECTION = "products"

    NAME_MIN_LENGTH = 2
    NAME_MAX_LENGTH = 150
    DESCRIPTION_MIN_LENGTH = 5
    DESCRIPTION_MAX_LENGTH = 2000
    BRAND_MAX_LENGTH = 50

    INDEXES = [
        IndexModel(
            [("name", TEXT), ("brand", TEXT), ("description", TEXT)],
            weights={"name": 10, "brand": 5, "description": 3},
            name="product_text_search",
        ),
        IndexModel([("sellerId", ASCENDING), ("name", ASCENDING)], name="seller_name"),
        IndexModel([("categoryId", ASCENDING)], name="category"),
        IndexModel([("isActive", ASCENDING), ("createdAt", DESCENDING)], name="active_created"),
    ]

    @staticmethod
    def empty_rating() -> dict:
        return {"average": 0, "count": 0}
