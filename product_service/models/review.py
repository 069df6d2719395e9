from pymongo import ASCENDING, DESCENDING, IndexModel


class Review:
    COLLECTION = "reviews"

    MIN_RATING = 1
    MAX_RATING = 5
    COMMENT_MAX_LENGTH = 1000

    # One review per user per product is enforced by ReviewService, not by this index.
    INDEXES = [
        IndexModel([("productId", ASCENDING), ("userId", ASCENDING)], name="product_user"),
        IndexModel([("productId", ASCENDING), ("createdAt", DESCENDING)], name="product_created"),
    ]
