from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.orders")

ORDER_NUMBER_PREFIX = "BZ"

PAYMENT_METHODS = ("credit_card", "debit_card", "paypal", "stripe", "bank_transfer", "cash_on_delivery")

INITIAL_STATUS = "pending"

CANCELLABLE_STATUSES = frozenset({"pending"})

# current status -> statuses an admin may move the order to
STATUS_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "returned"},
    "delivered": {"returned", "refunded"},
    "returned": {"refunded"},
    "cancelled": {"refunded"},
    "refunded": set(),
}

# statuses that put reserved stock back on the shelf
RESTOCK_STATUSES = frozenset({"cancelled", "returned"})
