"""Application configuration loaded from environment variables and .env file."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Inventory
    INVENTORY_LIMIT: int = 50
    ITEM_CATALOG_PATH: str = "src/data/items.json"
    STARTER_KIT_ENABLED: bool = True
    STARTING_CURRENCY: int = 0

    # Timers
    UI_FLUSH_DELAY_SECONDS: float = 0.1
    SAVE_SWEEP_INTERVAL_SECONDS: float = 60.0

    # Marketplace
    MARKET_REQUIRE_OWNERSHIP: bool = True
    LISTING_TTL_SECONDS: Optional[float] = None
    LISTING_EXPIRY_CHECK_SECONDS: float = 30.0

    # Client notifications
    OUTBOX_SIZE: int = 100


settings = Settings()
