from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.cart")

MAX_ITEM_QTY = 1000
