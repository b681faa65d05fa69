from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from bazaar.auth.dependencies import sanitize_input
from bazaar.auth.models import _strong_password

RoleName = Literal["super_admin", "admin", "vendor", "seller", "buyer", "visitor"]


class ChangePasswordIn(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _strong_password(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        if self.new_password == self.current_password:
            raise ValueError("New password must differ from the current one")
        return self


class ProfileUpdateIn(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=128)
    last_name: Optional[str] = Field(None, min_length=1, max_length=128)
    phone: Optional[str] = Field(None, max_length=20, pattern=r"^\+?[0-9 ()-]{6,20}$")
    avatar_url: Optional[str] = Field(None, max_length=1024)

    model_config = {"extra": "forbid"}

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_input(v) if isinstance(v, str) else v


class RoleChangeIn(BaseModel):
    role: RoleName
    reason: Optional[str] = Field(None, max_length=512)
