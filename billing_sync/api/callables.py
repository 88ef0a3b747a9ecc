"""Callable endpoints used by the web client.

Implements the Firebase callable wire shape:
- request body ``{"data": {...}}``
- success ``{"result": {...}}``
- failure ``{"error": {"status": ..., "message": ...}}`` (rendered by the
  BillingError handler in billing_sync.main)

Endpoints:
- POST /callable/createCheckoutSession
- POST /callable/createPortalSession
- POST /callable/cancelSubscription
- POST /callable/syncCheckoutSession
- POST /callable/verifySubscription
- POST /callable/todoistOauthInit

Every endpoint requires a Firebase ID token; the caller is rejected before any
store or Stripe access when it is missing.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ValidationError

from billing_sync.dependencies import CallerIdentity, Services, get_caller, get_services
from billing_sync.errors import InvalidArgumentError
from billing_sync.logging_config import get_logger
from billing_sync.models.api import (
    CallableRequest,
    CreateCheckoutSessionRequest,
    SyncCheckoutSessionRequest,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Callables"], prefix="/callable")


def _parse(model: type[BaseModel], body: Optional[CallableRequest]) -> Any:
    data = body.data if body is not None and body.data is not None else {}
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidArgumentError("Invalid request data") from e


def _result(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    return {"result": value}


@router.post("/createCheckoutSession", summary="Start a Stripe Checkout session")
def create_checkout_session(
        body: Optional[CallableRequest] = None,
        caller: CallerIdentity = Depends(get_caller),
        services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Create a Checkout session and return its URL.

    Data: ``priceId`` (price_...), ``mode`` ("subscription" or "payment").
    """
    request = _parse(CreateCheckoutSessionRequest, body)
    response = services.billing.create_checkout_session(
        caller.uid, caller.email, request.price_id, request.mode
    )
    return _result(response)


@router.post("/createPortalSession", summary="Open the Stripe customer portal")
def create_portal_session(
        caller: CallerIdentity = Depends(get_caller),
        services: Services = Depends(get_services),
) -> dict[str, Any]:
    return _result(services.billing.create_portal_session(caller.uid))


@router.post("/cancelSubscription", summary="Cancel at period end")
def cancel_subscription(
        caller: CallerIdentity = Depends(get_caller),
        services: Services = Depends(get_services),
) -> dict[str, Any]:
    return _result(services.billing.cancel_subscription(caller.uid))


@router.post("/syncCheckoutSession", summary="Apply a completed checkout session")
def sync_checkout_session(
        body: Optional[CallableRequest] = None,
        caller: CallerIdentity = Depends(get_caller),
        services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Apply the session the client just returned from, ahead of its webhook.

    Data: ``sessionId`` (cs_...).
    """
    request = _parse(SyncCheckoutSessionRequest, body)
    return _result(services.checkout_sync.sync_from_session(caller.uid, request.session_id))


@router.post("/verifySubscription", summary="Server-side premium check")
def verify_subscription(
        caller: CallerIdentity = Depends(get_caller),
        services: Services = Depends(get_services),
) -> dict[str, Any]:
    decision = services.resolver.verify(caller.uid, caller.email)
    logger.info("subscription_verified", has_access=decision.has_access, status=decision.status.value)
    return _result(decision.to_response())


@router.post("/todoistOauthInit", summary="Start the Todoist OAuth flow")
def todoist_oauth_init(
        caller: CallerIdentity = Depends(get_caller),
        services: Services = Depends(get_services),
) -> dict[str, Any]:
    return _result(services.oauth.authorize_url(caller.uid))
