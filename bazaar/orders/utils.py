import secrets
import string
from datetime import datetime
from typing import Iterable, Optional
from bazaar.orders.constants import ORDER_NUMBER_PREFIX, STATUS_TRANSITIONS

_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(at: datetime) -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(8))
    return f"{ORDER_NUMBER_PREFIX}-{at:%Y%m%d}-{suffix}"


def compute_order_totals(lines: Iterable[dict], tax_rate: float = 0.0, shipping: int = 0, discount: int = 0) -> dict:
    """Totals in cents. Each line needs `unit_price` and `quantity`."""
    subtotal = sum(int(l["unit_price"]) * int(l["quantity"]) for l in lines)
    tax = int(round(subtotal * tax_rate))
    discount = min(discount, subtotal + tax + shipping)
    return {
        "subtotal": subtotal,
        "tax_amount": tax,
        "shipping_amount": shipping,
        "discount_amount": discount,
        "total_amount": subtotal + tax + shipping - discount,
    }


def can_transition(current: Optional[str], target: str) -> bool:
    if current is None:
        return target in STATUS_TRANSITIONS
    return target in STATUS_TRANSITIONS.get(current, ())
