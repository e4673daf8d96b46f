"""SSM Parameter Store service for secure secret retrieval.

Provides cached access to AWS SSM Parameter Store SecureString parameters.
Used for the Stripe API key, the Stripe webhook signing secret and the
calendar access token.
"""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

from eventbook.config import load_config

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""

    pass


class SSMService:
    """Service for retrieving secrets from AWS SSM Parameter Store.

    Parameters live under ``/eventbook/{environment}/`` and are decrypted on
    read. Values are cached per instance.

    Usage:
        ssm = get_ssm_service()
        stripe_key = ssm.get_secret("stripe/secret_key")
    """

    _instance: ClassVar["SSMService | None"] = None

    def __init__(self, prefix: str | None = None) -> None:
        """Initialize the SSM client.

        Args:
            prefix: Parameter path prefix. Defaults to the configured one.
        """
        self._prefix = (prefix or load_config().ssm_prefix).rstrip("/")
        self._client = boto3.client("ssm")
        self._cache: dict[str, str] = {}

    @classmethod
    def get_instance(cls) -> "SSMService":
        """Get singleton instance of SSMService."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_secret(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a secret relative to this environment's prefix.

        Args:
            name: Relative path such as "stripe/webhook_secret"
            use_cache: Whether to use cached value if available

        Returns:
            The decrypted parameter value.

        Raises:
            SSMServiceError: If parameter cannot be retrieved.
        """
        return self.get_parameter(f"{self._prefix}/{name.lstrip('/')}", use_cache=use_cache)

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a parameter value from SSM Parameter Store.

        Args:
            name: Full parameter path (e.g., "/eventbook/dev/stripe/secret_key")
            use_cache: Whether to use cached value if available (default: True)

        Returns:
            The decrypted parameter value.

        Raises:
            SSMServiceError: If parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            logger.debug("SSM cache hit for %s", name)
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
            value: str = response["Parameter"]["Value"]

            self._cache[name] = value
            return value

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(
                f"Failed to retrieve SSM parameter {name}: {e}"
            ) from e

    def clear_cache(self) -> None:
        """Clear all cached parameters."""
        self._cache.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance (singleton pattern).

    Returns:
        SSMService: Shared service instance.
    """
    return SSMService.get_instance()


def reset_ssm_service() -> None:
    """Drop the shared instance (for testing only)."""
    SSMService._instance = None
    get_ssm_service.cache_clear()
