# hibalogique/config.py
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === General ===
    app_env: str = "local"  # local | development | production

    # === Logging ===
    log_level: str = "INFO"

    # === Persistence (key-value collaborator) ===
    storage_dir: str = Field("./.quote_storage", description="Base dir for LocalKeyValueStore")
    history_key: str = "hiba_quote_history"
    last_key: str = "hiba_quote_last"

    # === UI ===
    notice_ttl_seconds: float = 3.5
    currency_symbol: str = "$"
    company_name: str = "Hibalogique"
    company_contact: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HIBA_",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance with simple env overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
    elif env == "development":
        s.log_level = "DEBUG"

    return s


# Module-level export so `from hibalogique.config import settings` works
settings = get_settings()
