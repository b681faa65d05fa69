from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.catalog.products")

DEFAULT_PAGE_SIZE = 12

MAX_PAGE_SIZE = 100
