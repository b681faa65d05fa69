import re
from typing import  Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from bazaar.auth.constants import USERNAME_PATTERN
from bazaar.auth.dependencies import normalize_email_address, sanitize_input
from bazaar.auth.utils import validate_password

_USERNAME_RE = re.compile(USERNAME_PATTERN)


def _strong_password(value: str) -> str:
    ok, detail = validate_password(value)
    if not ok:
        raise ValueError(detail)
    return value


class SignupIn(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, examples=["jane_doe"])
    email: str = Field(..., examples=["jane@bazaarmail.com"])
    password: str = Field(..., examples=["Str0ng!Pass"])
    confirm_password: str
    first_name: Optional[str] = Field(None, min_length=1, max_length=128)
    last_name: Optional[str] = Field(None, min_length=1, max_length=128)

    @field_validator("username", "first_name", "last_name", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_input(v) if isinstance(v, str) else v

    @field_validator("username")
    @classmethod
    def _username_charset(cls, v: str) -> str:
        if not _USERNAME_RE.match(v):
            raise ValueError("Username can only contain letters, numbers, underscores and hyphens")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalize_email_address(sanitize_input(v))

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _strong_password(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class SignIn(BaseModel):
    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    remember_me: bool = False

    @field_validator("email_or_username", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_input(v) if isinstance(v, str) else v

    @property
    def is_email(self) -> bool:
        return "@" in self.email_or_username


class PasswordResetRequestIn(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalize_email_address(sanitize_input(v))


class PasswordResetIn(BaseModel):
    token: str = Field(..., min_length=1)
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _strong_password(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class TokenIn(BaseModel):
    token: str = Field(..., min_length=1)
