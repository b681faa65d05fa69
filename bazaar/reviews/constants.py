from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.reviews")

DEFAULT_REVIEWS_PAGE_SIZE = 10
