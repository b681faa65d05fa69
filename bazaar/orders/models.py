from typing import Literal, Optional
from pydantic import BaseModel, Field
from bazaar.auth.dependencies import sanitize_input

PaymentMethod = Literal["credit_card", "debit_card", "paypal", "stripe", "bank_transfer", "cash_on_delivery"]

OrderStatusName = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded", "returned"]


class AddressIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=3)
    phone: Optional[str] = Field(None, max_length=20)


class PlaceOrderIn(BaseModel):
    payment_method: PaymentMethod = "cash_on_delivery"
    shipping_address: Optional[AddressIn] = None
    billing_address: Optional[AddressIn] = None
    notes: Optional[str] = Field(None, max_length=2000)

    def clean_notes(self) -> Optional[str]:
        return sanitize_input(self.notes) or None


class CancelOrderIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=512)


class OrderStatusIn(BaseModel):
    status: OrderStatusName
    note: Optional[str] = Field(None, max_length=512)
