import re
from typing import Optional
from fastapi import Request,HTTPException,status
from fastapi.security import HTTPBearer
from bazaar.auth.constants import SESSION_TOKEN_LENGTH
from bazaar.auth.utils import decode_token

_SESSION_TOKEN_RE = re.compile(rf"[A-Za-z0-9]{{{SESSION_TOKEN_LENGTH}}}")


class Authentication(HTTPBearer):
    """Bearer credentials: either a signed access token or an opaque session token.

    Returns {"kind": "access", "claims": {...}} or {"kind": "session", "token": "..."},
    and None when no Authorization header is present and auto_error is off.
    """
    def __init__(self,auto_error=False):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request:Request) -> Optional[dict]:
        auth_creds=await super().__call__(request)
        if auth_creds is None:
            return None
        token=auth_creds.credentials

        claims=decode_token(token)
        if claims:
            return {"kind": "access", "claims": claims}

        if _SESSION_TOKEN_RE.fullmatch(token):
            return {"kind": "session", "token": token}

        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,detail="Invalid or expired token provided.")
