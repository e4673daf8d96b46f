"""Webhook endpoint for the payment processor.

Does NOT require a tenant key: the payload is authenticated by its Stripe
signature and carries the tenant in the session metadata. The body is read
as raw bytes because signature verification needs them unmodified.

The sender only ever sees a status code:
- 204: processed, duplicate or ignored
- 422: invalid signature or payload, do not retry
- 500: processing failed, retry later
"""

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.concurrency import run_in_threadpool
from starlette.status import (
    HTTP_204_NO_CONTENT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from eventbook.models.errors import WebhookProcessingError, WebhookValidationError
from eventbook.services.webhook_handler import PaymentEventIngestor
from eventbook.utils.logging import get_logger
from eventbook_api.dependencies import get_payment_ingestor

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhooks/payment",
    summary="Stripe webhook",
    status_code=HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        204: {"description": "Event processed, duplicate or ignored"},
        422: {"description": "Invalid signature or payload"},
        500: {"description": "Processing failed; the sender should retry"},
    },
)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    ingestor: PaymentEventIngestor = Depends(get_payment_ingestor),
) -> Response:
    payload = await request.body()

    try:
        outcome = await run_in_threadpool(ingestor.ingest, payload, stripe_signature)
    except WebhookValidationError as e:
        logger.warning("Rejected payment webhook: %s", e.message)
        return Response(status_code=HTTP_422_UNPROCESSABLE_ENTITY)
    except WebhookProcessingError as e:
        logger.warning("Payment webhook processing failed: %s", e.message)
        return Response(status_code=HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception:
        logger.exception("Unexpected error handling payment webhook")
        return Response(status_code=HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Payment webhook %s", outcome.value)
    return Response(status_code=HTTP_204_NO_CONTENT)
