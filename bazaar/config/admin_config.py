from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"                # "dev" / "staging" / "prod"
    ENABLE_ADMIN: bool = True
    SERVICE_NAME: str = "bazaar"
    ADMIN_ALLOWLIST_IPS: List[str] = []
    SUPER_ADMIN_EMAIL: Optional[str] = None

    class Config:
        env_file = ".env"
        extra="ignore"

admin_config = Settings()
