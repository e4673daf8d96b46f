"""Runtime configuration read from environment variables.

Secrets (Stripe keys, calendar tokens) are not part of this model; they live
in SSM Parameter Store under ``AppConfig.ssm_prefix`` and are fetched by the
services that need them.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError


class ConfigError(Exception):
    """Raised when an environment variable holds an invalid value."""

    pass


class AppConfig(BaseModel):
    """Immutable application settings."""

    model_config = ConfigDict(frozen=True)

    environment: str = Field(default="dev", description="Deployment environment name")
    table_prefix: str = Field(..., description="Prefix for every DynamoDB table name")
    store_backend: Literal["dynamodb", "memory"] = Field(default="dynamodb")
    booking_transaction_timeout_seconds: float = Field(default=5.0, gt=0, le=30)
    idempotency_ttl_hours: int = Field(default=24, ge=1)
    webhook_stale_after_seconds: int = Field(default=60, ge=1)
    stripe_success_url: str = Field(default="http://localhost:3000/booking/success")
    stripe_cancel_url: str = Field(default="http://localhost:3000/booking/cancel")
    stripe_currency: str = Field(default="eur", min_length=3, max_length=3)
    ses_from_email: str = Field(default="bookings@example.com")
    ses_region: str | None = Field(default=None)
    calendar_provider: Literal["none", "google"] = Field(default="none")
    google_calendar_id: str = Field(default="primary")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = Field(default="INFO")
    tenant_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Static api_key to tenant_id map used by the memory backend",
    )

    @property
    def ssm_prefix(self) -> str:
        """Parameter Store path prefix for this environment's secrets."""
        return f"/eventbook/{self.environment}"


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _split_pairs(value: str) -> dict[str, str]:
    pairs = {}
    for item in _split_csv(value):
        key, sep, tenant = item.partition("=")
        if not sep or not key.strip() or not tenant.strip():
            raise ConfigError(f"Invalid TENANT_KEYS entry: {item!r}")
        pairs[key.strip()] = tenant.strip()
    return pairs


def config_from_env(environ: dict[str, str] | None = None) -> AppConfig:
    """Build an AppConfig from an environment mapping.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Validated configuration.

    Raises:
        ConfigError: If any variable fails validation.
    """
    env = dict(os.environ if environ is None else environ)
    environment = env.get("ENVIRONMENT", "dev")

    raw: dict[str, object] = {
        "environment": environment,
        "table_prefix": env.get("DYNAMODB_TABLE_PREFIX", f"eventbook-{environment}"),
    }
    mapping = {
        "STORE_BACKEND": "store_backend",
        "BOOKING_TRANSACTION_TIMEOUT_SECONDS": "booking_transaction_timeout_seconds",
        "IDEMPOTENCY_TTL_HOURS": "idempotency_ttl_hours",
        "WEBHOOK_STALE_AFTER_SECONDS": "webhook_stale_after_seconds",
        "STRIPE_SUCCESS_URL": "stripe_success_url",
        "STRIPE_CANCEL_URL": "stripe_cancel_url",
        "STRIPE_CURRENCY": "stripe_currency",
        "SES_FROM_EMAIL": "ses_from_email",
        "SES_REGION": "ses_region",
        "CALENDAR_PROVIDER": "calendar_provider",
        "GOOGLE_CALENDAR_ID": "google_calendar_id",
        "LOG_LEVEL": "log_level",
    }
    for env_name, field_name in mapping.items():
        if env_name in env:
            raw[field_name] = env[env_name]
    if "CORS_ORIGINS" in env:
        raw["cors_origins"] = _split_csv(env["CORS_ORIGINS"])
    if "TENANT_KEYS" in env:
        raw["tenant_keys"] = _split_pairs(env["TENANT_KEYS"])

    try:
        return AppConfig.model_validate(raw)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigError(f"Invalid configuration for: {fields}") from e


@lru_cache(maxsize=1)
def load_config() -> AppConfig:
    """Get the process-wide configuration, read once from os.environ.

    Call ``load_config.cache_clear()`` in tests after changing the environment.
    """
    return config_from_env()
