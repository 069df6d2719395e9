from pymongo import ASCENDING, DESCENDING, IndexModel


class Order:
    COLLECTION = "orders"

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    STATUSES = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED)

    # status -> statuses it may move to
    TRANSITIONS = {
        PENDING: frozenset({CONFIRMED, CANCELLED}),
        CONFIRMED: frozenset({PROCESSING, CANCELLED}),
        PROCESSING: frozenset({SHIPPED, CANCELLED}),
        SHIPPED: frozenset({DELIVERED}),
        DELIVERED: frozenset(),
        CANCELLED: frozenset(),
    }

    EDITABLE_STATUSES = frozenset({PENDING})
    NOTES_MAX_LENGTH = 500

    INDEXES = [
        IndexModel([("userId", ASCENDING), ("createdAt", DESCENDING)], name="user_created"),
        IndexModel([("status", ASCENDING)], name="status"),
    ]

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.TRANSITIONS.get(current, frozenset())
