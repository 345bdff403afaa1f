import os
import tempfile
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    APP_BASE_URL: str = "http://localhost:3000"
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"
    RESET_DB: bool = False

    # payment gateway (mock)
    CHECKOUT_SESSION_TTL_SECONDS: int = 1800
    PAYMENT_MOCK_DELAY_MS: int = 0
    PAYMENT_WEBHOOK_SECRET: str = ""
    SUPPLIER_WEBHOOK_SECRET: str = ""

    # admin routes are refused while this is empty
    ADMIN_API_KEY: str = ""

    LOCK_DIR: str = os.path.join(tempfile.gettempdir(), "storefront_locks")
    LOCK_TIMEOUT_SECONDS: float = 10.0

    EVENTS_SYNCHRONOUS: bool = False
    EVENT_WORKERS: int = 2

    # 0 disables the expired-session sweep
    SESSION_SWEEP_SECONDS: int = 0


settings = Settings()
