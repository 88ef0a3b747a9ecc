"""Stripe webhook endpoint.

Implements:
- POST /webhooks/stripe - signature check, ledger admission, acknowledgement,
  then reconciliation in a background task once the response is sent
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from billing_sync.dependencies import Services, get_services
from billing_sync.errors import WebhookConfigurationError, WebhookSignatureError
from billing_sync.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Webhooks"], prefix="/webhooks")


@router.post("/stripe", response_class=PlainTextResponse, summary="Stripe event intake")
async def stripe_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        services: Services = Depends(get_services),
) -> PlainTextResponse:
    """Receive one Stripe event delivery.

    Returns:
        200 "Webhook received" for a new event, 200 "Already processed" for a
        redelivery, 400 for an unauthenticated body, 500 when the signing secret
        is not configured or the ledger is unavailable
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        receipt = await run_in_threadpool(services.webhooks.receive, payload, signature)
    except WebhookSignatureError as e:
        logger.warning("webhook_rejected", reason=str(e))
        return PlainTextResponse(str(e), status_code=400)
    except WebhookConfigurationError as e:
        logger.error("webhook_secret_missing", error=str(e))
        return PlainTextResponse("Webhook secret not configured", status_code=500)

    if not receipt.admitted:
        return PlainTextResponse("Already processed", status_code=200)

    background_tasks.add_task(services.webhooks.process, receipt.event)
    return PlainTextResponse("Webhook received", status_code=200)
