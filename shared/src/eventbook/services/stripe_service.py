"""Stripe payment service for checkout sessions and webhook verification.

Provides integration with Stripe using the v8+ StripeClient pattern.
Retrieves API keys from SSM Parameter Store.
"""

import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from eventbook.config import AppConfig, load_config
from eventbook.models.checkout import CheckoutSession
from eventbook.models.errors import PaymentProviderError, WebhookValidationError
from eventbook.ports import PaymentProvider

from .ssm_service import SSMService, SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)

# Checkout sessions expire after 30 minutes
CHECKOUT_SESSION_TTL_SECONDS = 1800


class StripeService(PaymentProvider):
    """Stripe implementation of the payment provider port.

    Handles:
    - Checkout session creation
    - Webhook signature validation

    Usage:
        stripe_svc = get_stripe_service()
        session = stripe_svc.create_checkout_session(
            amount_cents=250000,
            description="Garden ceremony on 2025-06-15",
            customer_email="jane@example.com",
            metadata={"tenantId": "tn_1", ...},
        )
    """

    def __init__(
        self,
        ssm: SSMService | None = None,
        config: AppConfig | None = None,
    ) -> None:
        """Initialize Stripe service. Credentials are read lazily from SSM.

        Args:
            ssm: Parameter Store service. Defaults to the shared instance.
            config: Application config. Defaults to the loaded config.
        """
        self._ssm = ssm or get_ssm_service()
        self._config = config or load_config()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            PaymentProviderError: If credentials cannot be retrieved.
        """
        if self._client is None:
            try:
                secret_key = self._ssm.get_secret("stripe/secret_key")
                self._client = StripeClient(secret_key)
                logger.info("Stripe client initialized for environment: %s", self._config.environment)
            except SSMServiceError as e:
                raise PaymentProviderError(f"Failed to initialize Stripe client: {e}") from e
        return self._client

    def _get_webhook_secret(self) -> str:
        """Get the webhook signing secret.

        Raises:
            PaymentProviderError: If secret cannot be retrieved.
        """
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_secret("stripe/webhook_secret")
            except SSMServiceError as e:
                raise PaymentProviderError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    def create_checkout_session(
        self,
        *,
        amount_cents: int,
        description: str,
        customer_email: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        """Create a Stripe Checkout session.

        Args:
            amount_cents: Total in minor currency units.
            description: Line item description.
            customer_email: Customer email for the Stripe receipt.
            metadata: Booking details echoed back in the completion webhook.
            idempotency_key: Forwarded to Stripe so retried requests reuse
                the same session.

        Returns:
            The created session ID and redirect URL.

        Raises:
            PaymentProviderError: If session creation fails.
        """
        client = self._get_client()
        options: dict[str, Any] = {}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        try:
            logger.info(
                "Creating Stripe checkout session for tenant %s, amount %d cents",
                metadata.get("tenantId"),
                amount_cents,
            )

            session = client.checkout.sessions.create(
                params={
                    "mode": "payment",
                    "payment_method_types": ["card"],
                    "line_items": [
                        {
                            "price_data": {
                                "currency": self._config.stripe_currency,
                                "unit_amount": amount_cents,
                                "product_data": {
                                    "name": "Event Booking",
                                    "description": description,
                                },
                            },
                            "quantity": 1,
                        }
                    ],
                    "success_url": self._config.stripe_success_url,
                    "cancel_url": self._config.stripe_cancel_url,
                    "metadata": metadata,
                    "customer_email": customer_email,
                    "expires_at": int(datetime.now(timezone.utc).timestamp())
                    + CHECKOUT_SESSION_TTL_SECONDS,
                },
                options=options,
            )

            logger.info("Checkout session created: %s", session.id)
            return CheckoutSession(session_id=session.id, checkout_url=session.url)

        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error(
                "Stripe checkout session creation failed: %s (code: %s)",
                str(e),
                error_code,
            )
            raise PaymentProviderError(
                f"Failed to create checkout session: {e}",
                stripe_error_code=error_code,
            ) from e

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event as plain dictionaries.

        Raises:
            WebhookValidationError: If the signature or payload is invalid.
        """
        webhook_secret = self._get_webhook_secret()

        try:
            event = stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise WebhookValidationError("Invalid webhook signature") from e
        except ValueError as e:
            logger.warning("Invalid webhook payload: %s", str(e))
            raise WebhookValidationError("Invalid webhook payload") from e

        logger.info("Webhook signature verified for event: %s", event["id"])
        parsed: dict[str, Any] = json.loads(payload)
        return parsed


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern)."""
    return StripeService()
