"""Runtime settings read from environment variables.

Usage:
    from fleet.config import get_settings

    settings = get_settings()
    settings.table_prefix  # "fleet-dev"

Testing:
    Call get_settings.cache_clear() after changing the environment.
"""

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Booking backend configuration."""

    model_config = ConfigDict(strict=True, frozen=True)

    environment: str = Field(default="dev", description="Deployment environment")
    table_prefix: str = Field(..., description="DynamoDB table name prefix")
    aws_region: str | None = Field(default=None, description="AWS region override")

    dynamodb_connect_timeout: float = Field(default=2.0, gt=0)
    dynamodb_read_timeout: float = Field(default=5.0, gt=0)
    dynamodb_max_retries: int = Field(default=3, ge=0)

    booking_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts when a booking transaction loses a vehicle-lock race",
    )
    transaction_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Deadline for one booking or reconciliation operation",
    )
    email_case_insensitive: bool = Field(
        default=False,
        description="Lower-case emails before customer lookup and storage",
    )
    payment_currency: str = Field(default="usd", min_length=3, max_length=3)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        environment = os.getenv("ENVIRONMENT", "dev")
        return cls(
            environment=environment,
            # Allow override via DYNAMODB_TABLE_PREFIX for testing
            table_prefix=os.getenv("DYNAMODB_TABLE_PREFIX", f"fleet-{environment}"),
            aws_region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            dynamodb_connect_timeout=float(os.getenv("DYNAMODB_CONNECT_TIMEOUT", "2")),
            dynamodb_read_timeout=float(os.getenv("DYNAMODB_READ_TIMEOUT", "5")),
            dynamodb_max_retries=int(os.getenv("DYNAMODB_MAX_RETRIES", "3")),
            booking_max_attempts=int(os.getenv("BOOKING_MAX_ATTEMPTS", "3")),
            transaction_timeout_seconds=float(os.getenv("TRANSACTION_TIMEOUT_SECONDS", "10")),
            email_case_insensitive=_env_bool("EMAIL_CASE_INSENSITIVE", False),
            payment_currency=os.getenv("PAYMENT_CURRENCY", "usd").lower(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the shared Settings instance."""
    return Settings.from_env()
