from pymongo import ASCENDING, IndexModel


class InventoryItem:
    COLLECTION = "inventoryitems"

    STATUSES = ("Sealed", "Unsealed")
    DEFAULT_CURRENCY = "INR"
    DEFAULT_STATUS = "Sealed"
    DEFAULT_GST_PERCENTAGE = 18
    BATCH_NUMBER_MAX_LENGTH = 100
    HSN_CODE_MAX_LENGTH = 20

    INDEXES = [
        # batchNumber is optional; only documents that carry one take part in the uniqueness check.
        IndexModel(
            [("variantId", ASCENDING), ("batchNumber", ASCENDING)],
            unique=True,
            partialFilterExpression={"batchNumber": {"$type": "string"}},
            name="variant_batch_unique",
        ),
        IndexModel([("variantId", ASCENDING)], name="variant"),
        IndexModel([("manufacturingDetails.expDate", ASCENDING)], name="exp_date"),
    ]
