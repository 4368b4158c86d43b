"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "orca"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Public URL used to build Paystack callback and payment links
    app_base_url: str = "http://localhost:3000"

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Postgres
    database_url: str = ""
    database_ssl: bool = True

    # Redis (webhook delivery guard + Celery broker)
    redis_url: str = "redis://localhost:6379/0"

    # Paystack
    # Optional at startup; calls that need it fail with PaystackConfigError.
    paystack_secret_key: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    paystack_timeout_seconds: float = 30.0
    paystack_verify_max_attempts: int = 3
    # Re-check charge.* webhooks against /transaction/verify before acting
    paystack_verify_webhooks: bool = True

    # Payment lifecycle
    payment_link_ttl_hours: int = 72
    webhook_dedup_ttl_seconds: int = 86400

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@dataclass(frozen=True)
class PaystackConfig:
    """
    Paystack credentials and client tuning, passed explicitly to the
    webhook verifier and the transaction client.
    """

    secret_key: str
    base_url: str = "https://api.paystack.co"
    timeout_seconds: float = 30.0
    verify_max_attempts: int = 3

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        return f"PaystackConfig(base_url={self.base_url!r}, secret_key=***)"

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PaystackConfig":
        return cls(
            secret_key=settings.paystack_secret_key,
            base_url=settings.paystack_base_url.rstrip("/"),
            timeout_seconds=settings.paystack_timeout_seconds,
            verify_max_attempts=settings.paystack_verify_max_attempts,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_paystack_config() -> PaystackConfig:
    """Build the Paystack config from the cached settings."""
    return PaystackConfig.from_settings(get_settings())


settings = get_settings()
