from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGO: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    SESSION_EXPIRE_HOURS: int = 24
    REMEMBER_ME_EXPIRE_DAYS: int = 30
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    CSRF_TOKEN_EXPIRE_MINUTES: int = 60
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 48
    PASS_HASH_SCHEME: str = "bcrypt"
    TOKEN_HASH_ALGO: str = "sha256"
    DEFAULT_ROLE: str = "buyer"
    DB_ECHO: bool = False

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    CACHE_ENABLED: bool = True
    CATEGORY_TREE_TTL: int = 300

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 1025
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM: str = "no-reply@bazaar.local"
    SMTP_USE_TLS: bool = False
    FRONTEND_URL: str = "http://localhost:5173"

    DEFAULT_CURRENCY: str = "USD"
    ORDER_TAX_RATE: float = 0.0
    ORDER_FLAT_SHIPPING: int = 0

    METRICS_ENABLED: bool = False

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
