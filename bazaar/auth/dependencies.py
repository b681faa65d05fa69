from typing import Optional
from email_validator import validate_email, EmailNotValidError
from fastapi import Header, Request
from fastapi.params import Cookie
from bazaar.auth.constants import COOKIE_NAME


def normalize_email_address(email: str) -> str:
    """
    Validate and return normalized email (lowercased, normalized by email-validator).
    Raises ValueError if invalid.
    """
    try:
        v = validate_email(email, check_deliverability=False)
        return v.normalized.lower()
    except EmailNotValidError as e:
        raise ValueError(str(e))


def sanitize_input(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().replace("<", "").replace(">", "")


def client_meta(request: Request) -> dict:
    ua = request.headers.get("user-agent", "")[:512] or None
    ip = request.client.host if request.client else None
    return {"ip_address": ip, "user_agent": ua}


#** dev mode compatible until a browser client exists, cookies win later
def refresh_token(refresh_header: Optional[str] = Header(None, alias="X-Refresh-Token"),
                refresh_cookie:Optional[str]=Cookie(None,alias=COOKIE_NAME)):
    return refresh_header or refresh_cookie
