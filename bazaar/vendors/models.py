from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator
from bazaar.auth.dependencies import normalize_email_address, sanitize_input

BusinessType = Literal["individual", "company", "corporation"]


class VendorIn(BaseModel):
    business_name: str = Field(..., min_length=1, max_length=255)
    business_type: Optional[BusinessType] = None
    tax_id: Optional[str] = Field(None, max_length=64)
    business_email: Optional[str] = None
    business_phone: Optional[str] = Field(None, max_length=20)
    website_url: Optional[str] = Field(None, max_length=1024)
    description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=1024)

    @field_validator("business_name", "description", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_input(v) if isinstance(v, str) else v

    @field_validator("business_email")
    @classmethod
    def _email(cls, v):
        return normalize_email_address(v) if v else v


class VendorUpdateIn(VendorIn):
    business_name: Optional[str] = Field(None, min_length=1, max_length=255)

    # runs only for values sent in the body
    @field_validator("business_name")
    @classmethod
    def _keep_name(cls, v):
        if v is None:
            raise ValueError("business_name cannot be null")
        return v


class VendorVerifyIn(BaseModel):
    is_verified: bool = True
    is_active: Optional[bool] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=1)
