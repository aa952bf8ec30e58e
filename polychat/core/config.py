from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Polychat"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    DATABASE_URL: str = "sqlite+aiosqlite:///./polychat.db"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Providers without a key are left out of the registry entirely
    OPENAI_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None

    TITLE_MAX_LENGTH: int = 50
    # Keep generating and persist the answer after the client hangs up
    PERSIST_ON_DISCONNECT: bool = True
    # Reject a second send to a session that is still generating
    SESSION_LOCK_ENABLED: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
