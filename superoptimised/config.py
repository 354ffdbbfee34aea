"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Annotated, Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./superoptimised.db"
DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    frontend_url: str = "https://superoptimised.com"
    cors_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "https://superoptimised.com",
    ]
    environment: str = "development"
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    access_token_exp_minutes: int = 120
    access_token_cookie_name: str = "superoptimised_access_token"

    # Admin access
    admin_emails: Annotated[set[str], NoDecode] = set()

    # Anonymous voters
    voter_token_cookie_name: str = "voter_token"
    voter_token_max_age_days: int = 365

    # Rate limiting (per IP, per action)
    rate_limit_default_max: int = 100
    rate_limit_action_max: dict[str, int] = {"vote": 100, "newsletter": 5}
    rate_limit_window_seconds: int = 24 * 60 * 60

    # Engagement
    streak_window_days: int = 1

    # Maintenance
    cleanup_interval_minutes: int = 60
    cleanup_startup_delay_seconds: int = 60

    @field_validator("admin_emails", mode="before")
    @classmethod
    def parse_admin_emails(cls, value):
        """Parse comma-separated admin emails from environment variables."""
        if value is None:
            return set()
        if isinstance(value, str):
            items = [item.strip().lower() for item in value.split(",") if item.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = [str(item).strip().lower() for item in value if str(item).strip()]
        else:
            raise TypeError("admin_emails must be provided as a string or sequence")
        return set(items)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def is_admin_email(self, email: str | None) -> bool:
        """Determine if the provided email belongs to an administrator."""
        if not email:
            return False
        normalized = email.strip().lower()
        return normalized in self.admin_emails

    def rate_limit_for(self, action_type: str) -> int:
        """Maximum requests per window for an action type."""
        return self.rate_limit_action_max.get(action_type, self.rate_limit_default_max)

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate security configuration and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if self.environment == "production":
            if self.secret_key == DEFAULT_SECRET_KEY:
                raise ValueError("secret_key must be changed from default value in production")

        if self.jwt_algorithm not in ["HS256", "HS384", "HS512"]:
            raise ValueError(f"Unsupported JWT algorithm: {self.jwt_algorithm}. Use HS256, HS384, or HS512.")

        if self.access_token_exp_minutes < 1 or self.access_token_exp_minutes > 1440:
            raise ValueError("access_token_exp_minutes must be between 1 and 1440 (24 hours)")

        if self.rate_limit_default_max < 1:
            raise ValueError("rate_limit_default_max must be at least 1")
        for action_type, limit in self.rate_limit_action_max.items():
            if limit < 1:
                raise ValueError(f"rate limit for action '{action_type}' must be at least 1")
        if self.rate_limit_window_seconds < 1:
            raise ValueError("rate_limit_window_seconds must be at least 1")

        if self.streak_window_days < 1:
            raise ValueError("streak_window_days must be at least 1 day")

        if self.cleanup_interval_minutes < 1:
            raise ValueError("cleanup_interval_minutes must be at least 1 minute")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            raise ValueError("DATABASE_URL is not a valid SQLAlchemy URL") from e

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {drivername} -> {parsed.drivername}")
        # render_as_string re-encodes special characters in the password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
