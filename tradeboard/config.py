"""
Application configuration management using Pydantic settings.
Loads configuration from environment variables with validation.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


FILL_PRICING_POLICIES = ("fixed_band", "market")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    API keys and webhook URLs should be set via environment variables,
    not hardcoded in this file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "tradeboard"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./tradeboard.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS Configuration
    # Comma-separated list of allowed origins, or "*" for all
    cors_allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    cors_allow_credentials: bool = True
    cors_allow_methods: str = "GET,POST,PATCH,DELETE,OPTIONS"
    cors_allow_headers: str = "Content-Type,X-User-Id,X-Company-Id,X-Correlation-ID"

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parses comma-separated CORS origins into a list.
        Returns ["*"] if cors_allowed_origins is set to "*".
        """
        if self.cors_allowed_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    @property
    def cors_methods_list(self) -> list[str]:
        """Parses comma-separated CORS methods into a list."""
        return [method.strip() for method in self.cors_allow_methods.split(",") if method.strip()]

    @property
    def cors_headers_list(self) -> list[str]:
        """Parses comma-separated CORS headers into a list."""
        return [header.strip() for header in self.cors_allow_headers.split(",") if header.strip()]

    # Market data (options snapshot API used for price verification)
    market_data_base_url: str = "https://api.polygon.io"
    market_data_api_key: str | None = None
    market_data_timeout_seconds: float = 10.0

    # Fill pricing
    fill_pricing_policy: str = "fixed_band"
    price_band_pct: float = 0.05

    @field_validator("fill_pricing_policy")
    @classmethod
    def validate_fill_pricing_policy(cls, v: str) -> str:
        """Only the known pricing policies may be configured."""
        v = v.strip().lower()
        if v not in FILL_PRICING_POLICIES:
            raise ValueError(
                f"FILL_PRICING_POLICY must be one of {', '.join(FILL_PRICING_POLICIES)}"
            )
        return v

    @field_validator("price_band_pct")
    @classmethod
    def validate_price_band_pct(cls, v: float) -> float:
        """Band is a fraction of the reference price, e.g. 0.05 for 5%."""
        if not 0 < v < 1:
            raise ValueError("PRICE_BAND_PCT must be between 0 and 1 (exclusive)")
        return v

    # Trading rules
    enforce_market_hours: bool = False
    max_contracts_per_trade: int | None = None

    # Leaderboard
    leaderboard_cache_ttl_seconds: int = 10
    affiliate_code: str | None = None

    # Fallback Discord webhook when a user has none configured
    discord_webhook_url: str | None = None

    @property
    def async_database_url(self) -> str:
        """
        Ensures the database URL uses an async driver.
        Converts postgresql:// to postgresql+asyncpg:// and
        sqlite:// to sqlite+aiosqlite:// if needed.
        """
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()
