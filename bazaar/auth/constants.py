from datetime import timedelta
from bazaar.config.settings import config_settings
from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.auth")

MAX_LOGIN_ATTEMPTS = 5

LOCKOUT_DURATION = timedelta(minutes=30)

LOGIN_ATTEMPT_RETENTION = timedelta(days=30)

CSRF_TOKEN_LENGTH = 32

SESSION_TOKEN_LENGTH = 64

SESSION_TTL = timedelta(hours=config_settings.SESSION_EXPIRE_HOURS)

REMEMBER_ME_TTL = timedelta(days=config_settings.REMEMBER_ME_EXPIRE_DAYS)

PASSWORD_RESET_TTL = timedelta(minutes=config_settings.PASSWORD_RESET_EXPIRE_MINUTES)

CSRF_TOKEN_TTL = timedelta(minutes=config_settings.CSRF_TOKEN_EXPIRE_MINUTES)

EMAIL_VERIFICATION_TTL = timedelta(hours=config_settings.EMAIL_VERIFICATION_EXPIRE_HOURS)

ACCESS_TOKEN_TTL_SECONDS = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60

COOKIE_NAME = "__Secure-refresh_token"

SESSION_COOKIE_NAME = "__Secure-session_token"

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"

GENERIC_LOGIN_ERROR = "Invalid email/username or password"
