"""Stripe gateway - the only module that talks to the Stripe SDK.

Responsibilities:
- Verify webhook signatures and decode events
- Retrieve checkout sessions, subscriptions, customers
- Create checkout and customer-portal sessions
- Schedule cancellation at period end

Stripe objects are converted to plain dicts and validated into the typed models
in billing_sync.models.gateway before they leave this module. SDK failures are
wrapped in GatewayError.
"""

from typing import Any, Optional

import stripe
from pydantic import ValidationError

from billing_sync.errors import GatewayError, WebhookConfigurationError, WebhookSignatureError
from billing_sync.logging_config import get_logger, mask_id
from billing_sync.models.events import BillingEvent, parse_event
from billing_sync.models.gateway import (
    GatewayCheckoutSession,
    GatewayCustomer,
    GatewaySubscription,
)

logger = get_logger(__name__)


def _to_dict(stripe_object: Any) -> dict[str, Any]:
    to_dict = getattr(stripe_object, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(stripe_object)


class StripeGateway:
    """Thin, typed wrapper over the Stripe Python SDK.

    Constructed once per process; holds only immutable credentials, so one
    instance is safely shared across requests.
    """

    def __init__(
            self,
            api_key: Optional[str],
            webhook_secret: Optional[str] = None,
            api_version: Optional[str] = None,
    ):
        """Initialize gateway.

        Args:
            api_key: Stripe secret key
            webhook_secret: Webhook signing secret (only needed for webhook intake)
            api_version: Stripe API version to pin requests to
        """
        if not api_key:
            raise ValueError("STRIPE_SECRET_KEY environment variable is not set")
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._api_version = api_version
        logger.info("stripe_gateway_initialized", api_version=api_version)

    def _request_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"api_key": self._api_key}
        if self._api_version:
            options["stripe_version"] = self._api_version
        return options

    def _call(self, operation: str, func, *args, **kwargs):
        """Invoke an SDK function, wrapping Stripe errors."""
        try:
            return func(*args, **kwargs, **self._request_options())
        except stripe.StripeError as e:
            logger.error(
                "stripe_call_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GatewayError(operation, e) from e

    # ==================== Webhooks ====================

    def construct_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        """Verify a webhook body against its Stripe-Signature header and decode it.

        Raises:
            WebhookConfigurationError: If no signing secret is configured
            WebhookSignatureError: If the header is missing or the signature/payload is invalid
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature header")
        if not self._webhook_secret:
            raise WebhookConfigurationError("STRIPE_WEBHOOK_SECRET not configured")

        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError("Invalid signature") from e
        except ValueError as e:
            raise WebhookSignatureError("Invalid payload") from e

        try:
            return parse_event(_to_dict(event))
        except ValidationError as e:
            logger.warning("webhook_event_malformed", error_count=e.error_count())
            raise WebhookSignatureError("Invalid payload") from e

    # ==================== Reads ====================

    def retrieve_checkout_session(self, session_id: str) -> GatewayCheckoutSession:
        session = self._call("checkout.sessions.retrieve", stripe.checkout.Session.retrieve, session_id)
        return GatewayCheckoutSession.model_validate(_to_dict(session))

    def retrieve_subscription(self, subscription_id: str) -> GatewaySubscription:
        subscription = self._call("subscriptions.retrieve", stripe.Subscription.retrieve, subscription_id)
        return GatewaySubscription.model_validate(_to_dict(subscription))

    def find_customer_by_email(self, email: str) -> Optional[GatewayCustomer]:
        """Return the first customer with this email, or None."""
        customers = self._call("customers.list", stripe.Customer.list, email=email, limit=1)
        if not customers.data:
            return None
        return GatewayCustomer.model_validate(_to_dict(customers.data[0]))

    def latest_subscription(self, customer_id: str) -> Optional[GatewaySubscription]:
        """Return the customer's most recent subscription in any status, or None."""
        subscriptions = self._call(
            "subscriptions.list", stripe.Subscription.list, customer=customer_id, status="all", limit=1
        )
        if not subscriptions.data:
            return None
        return GatewaySubscription.model_validate(_to_dict(subscriptions.data[0]))

    def list_checkout_sessions(
            self, customer_id: Optional[str] = None, limit: int = 5
    ) -> list[GatewayCheckoutSession]:
        """List recent checkout sessions, newest first, optionally for one customer."""
        params: dict[str, Any] = {"limit": limit}
        if customer_id:
            params["customer"] = customer_id
        sessions = self._call("checkout.sessions.list", stripe.checkout.Session.list, **params)
        return [GatewayCheckoutSession.model_validate(_to_dict(s)) for s in sessions.data]

    # ==================== Writes ====================

    def create_checkout_session(self, **params: Any) -> GatewayCheckoutSession:
        session = self._call("checkout.sessions.create", stripe.checkout.Session.create, **params)
        logger.info("checkout_session_created", session_id=mask_id(session.id), mode=params.get("mode"))
        return GatewayCheckoutSession.model_validate(_to_dict(session))

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a customer portal session and return its URL."""
        session = self._call(
            "billing_portal.sessions.create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return session.url

    def schedule_cancellation(self, subscription_id: str) -> GatewaySubscription:
        """Set cancel_at_period_end on a subscription."""
        subscription = self._call(
            "subscriptions.update",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=True,
        )
        logger.info("subscription_cancellation_scheduled", subscription_id=mask_id(subscription_id))
        return GatewaySubscription.model_validate(_to_dict(subscription))
