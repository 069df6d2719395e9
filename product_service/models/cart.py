from pymongo import ASCENDING, IndexModel


class Cart:
    COLLECTION = "carts"

    MAX_ITEM_QUANTITY = 999

    INDEXES = [
        IndexModel([("userId", ASCENDING)], unique=True, name="user_unique"),
    ]
