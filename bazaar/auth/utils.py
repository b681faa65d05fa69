from datetime import datetime, timedelta, timezone
import hashlib
import re
import secrets
import string
from typing import Optional
from passlib.context import CryptContext
from jose import jwt, JWTError
from bazaar.config.settings import config_settings

PASS_HASH_SCHEME=config_settings.PASS_HASH_SCHEME
TOKEN_HASH_ALGO = config_settings.TOKEN_HASH_ALGO
JWT_SECRET = config_settings.JWT_SECRET
JWT_ALGO = config_settings.JWT_ALGO

ACCESS_TOKEN_EXPIRE_MINUTES = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES)

TOKEN_ALPHABET = string.ascii_letters + string.digits

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

pwd_context = CryptContext(schemes=[PASS_HASH_SCHEME], deprecated="auto")

def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)

def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def validate_password(password: str, min_length: int = 8) -> tuple[bool, str]:
    """Returns (ok, message) where message names the first rule that failed."""
    if len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"
    if not any(c.isupper() for c in password if c.isascii()):
        return False, "Password must include at least one uppercase letter"
    if not any(c.islower() for c in password if c.isascii()):
        return False, "Password must include at least one lowercase letter"
    if not any(c.isdigit() for c in password if c.isascii()):
        return False, "Password must include at least one digit"
    if not _NON_ALNUM.search(password):
        return False, "Password must include at least one special character"
    return True, "OK"


def check_password_strength(password: str) -> bool:
    return validate_password(password)[0]


def generate_secure_token(length: int = 32) -> str:
    """Random string over A-Za-z0-9 drawn from the OS CSPRNG."""
    if length <= 0:
        raise ValueError("token length must be positive")
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def hash_token(plain:str)->str:
    hash_func=getattr(hashlib,TOKEN_HASH_ALGO)
    return hash_func(plain.encode()).hexdigest()


def create_access_token(user_public_id, role: Optional[str], role_version: int, session_pid,
                        expires_dur: int = ACCESS_TOKEN_EXPIRE_MINUTES):
    now=datetime.now(timezone.utc)
    expiry= now + (timedelta(minutes=expires_dur))

    payload = {
        "sub": str(user_public_id),
        "iat": int(now.timestamp()),
        "exp": int(expiry.timestamp()),
        "jti": secrets.token_hex(16),
        "role": role,
        "role_version": role_version,
        "sid": str(session_pid),
    }
    token=jwt.encode(claims=payload,key=JWT_SECRET,algorithm=JWT_ALGO)
    return token


def decode_token(token:str):
    """Verify signature and expiry; returns the claims or None"""
    try:
        token_data=jwt.decode(
        token,
        key=JWT_SECRET,
        algorithms=[JWT_ALGO]
        )
        return token_data
    except JWTError:
        return None
