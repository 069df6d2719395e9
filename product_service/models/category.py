from pymongo import ASCENDING, IndexModel


class Category:
    COLLECTION = "categories"

    NAME_MAX_LENGTH = 50
    DESCRIPTION_MAX_LENGTH = 500

    INDEXES = [
        IndexModel([("name", ASCENDING)], unique=True, name="name_unique"),
        IndexModel([("parentCategory", ASCENDING)], name="parent"),
        IndexModel([("ancestors", ASCENDING)], name="ancestors"),
    ]
