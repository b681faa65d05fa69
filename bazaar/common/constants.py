import contextvars
from typing import Optional

# Context variable for request id, set by RequestIdMiddleware
request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

ADMIN_ROLES = frozenset({"super_admin", "admin"})
VENDOR_ROLES = frozenset({"vendor", "seller"})
ALL_ROLES = ("super_admin", "admin", "vendor", "seller", "buyer", "visitor")
