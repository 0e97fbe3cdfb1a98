"""
Project-wide settings.
Loads environment variables (and .env) into a type-safe settings object.
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

_PACKAGE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings for the feed ingestion service."""

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "marketfeed"
    db_password: str = ""
    db_name: str = "marketfeed"
    # Full SQLAlchemy URL; overrides the db_* fields when set
    # (e.g. "sqlite+aiosqlite:///./marketfeed.db" for local runs).
    db_url: str = ""
    db_echo: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = str(_PACKAGE_DIR.parent / "logs")

    # Feed list / taxonomy sources
    feeds_config_path: str = str(_PACKAGE_DIR / "crawler" / "feeds.csv")
    taxonomy_path: str = ""  # empty -> built-in taxonomy

    # Fetching
    fetch_timeout_seconds: float = 30.0
    fetch_connect_timeout_seconds: float = 10.0
    user_agent: str = "MarketFeed/1.0 (Financial News Aggregator)"

    # Batch throttling
    batch_size: int = 3
    batch_delay_seconds: float = 1.0

    # Cadences
    ingestion_interval_minutes: int = 15
    statistics_interval_minutes: int = 60
    maintenance_hour_utc: int = 2

    # Retention
    retention_days: int = 30

    @field_validator(
        "batch_size",
        "ingestion_interval_minutes",
        "statistics_interval_minutes",
        "retention_days",
    )
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("maintenance_hour_utc")
    @classmethod
    def _valid_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("maintenance_hour_utc must be between 0 and 23")
        return value

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy URL (asyncpg driver unless db_url overrides it)."""
        if self.db_url:
            return self.db_url
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    model_config = {
        "env_prefix": "MARKETFEED_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the Settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
