"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql://localhost/sector_rotation"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Market data (Stooq daily CSV)
    market_data_stooq_base_url: str = "https://stooq.com/q/d/l/"
    market_data_timeout_seconds: float = 10.0

    # Research AI scoring provider
    research_ai_base_url: str = "http://localhost:8002"
    research_ai_api_key: str = ""
    research_ai_timeout_seconds: float = 30.0

    # Indicator / ranking defaults
    market_benchmark: str = "SPY"
    sector_benchmark: str = "QQQ"
    lookback_days: int = 260
    sector_top_n: int = 2
    max_concurrency: int = 10

    # Universe catalogue
    universe_path: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
