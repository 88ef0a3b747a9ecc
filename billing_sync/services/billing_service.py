"""Client billing operations - checkout, customer portal, cancellation.

Responsibilities:
- Validate client input before any Stripe call
- Create Checkout sessions tagged with the caller's user ID
- Open the customer portal for an existing customer
- Schedule cancellation at period end and mirror it into the record
"""

from typing import Any, Optional

from billing_sync.errors import (
    FailedPreconditionError,
    GatewayError,
    InternalError,
    InvalidArgumentError,
)
from billing_sync.logging_config import get_logger, mask_id
from billing_sync.models.api import CancelSubscriptionResponse, UrlResponse
from billing_sync.models.settings import CheckoutConfig, PortalConfig
from billing_sync.repositories.subscription_store import SubscriptionNotFoundError
from billing_sync.services.reconciler import SubscriptionReconciler

logger = get_logger(__name__)

CHECKOUT_MODES = ("subscription", "payment")


class BillingService:
    """Stripe-backed operations invoked by signed-in clients.

    Args:
        reconciler: Reconciler (provides the store and the Stripe gateway)
        checkout: Checkout URLs, trial length and price ID rules
        portal: Customer portal settings
        user_metadata_key: Metadata key carrying the user ID on Stripe objects
    """

    def __init__(
            self,
            reconciler: SubscriptionReconciler,
            checkout: Optional[CheckoutConfig] = None,
            portal: Optional[PortalConfig] = None,
            user_metadata_key: str = "firebaseUid",
    ):
        self.reconciler = reconciler
        self.store = reconciler.store
        self.gateway = reconciler.gateway
        self.checkout = checkout or CheckoutConfig()
        self.portal = portal or PortalConfig()
        self.user_metadata_key = user_metadata_key

    def create_checkout_session(
            self,
            uid: str,
            email: Optional[str],
            price_id: Optional[str],
            mode: Optional[str],
    ) -> UrlResponse:
        """Create a Checkout session for a recurring plan or a lifetime purchase.

        Recurring plans get the configured free trial. Both modes carry the user
        ID in Stripe metadata and as ``client_reference_id``.

        Raises:
            InvalidArgumentError: Unknown mode or malformed price ID
            InternalError: Stripe failure
        """
        if mode not in CHECKOUT_MODES:
            raise InvalidArgumentError('Invalid mode. Must be "subscription" or "payment"')

        prefix = self.checkout.price_id_prefix
        if not price_id or not isinstance(price_id, str) or not price_id.startswith(prefix):
            raise InvalidArgumentError(
                f'Invalid priceId. Must be a valid Stripe price ID starting with "{prefix}"'
            )

        params: dict[str, Any] = {
            "mode": mode,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": self.checkout.success_url,
            "cancel_url": self.checkout.cancel_url,
            "client_reference_id": uid,
        }
        if email:
            params["customer_email"] = email

        metadata = {self.user_metadata_key: uid}
        if mode == "subscription":
            subscription_data: dict[str, Any] = {"metadata": metadata}
            if self.checkout.trial_period_days > 0:
                subscription_data["trial_period_days"] = self.checkout.trial_period_days
            params["subscription_data"] = subscription_data
        else:
            params["payment_intent_data"] = {"metadata": metadata}

        try:
            session = self.gateway.create_checkout_session(**params)
        except GatewayError as e:
            logger.error("checkout_session_create_failed", uid=uid, mode=mode, error=str(e))
            raise InternalError("Failed to create checkout session") from e

        if not session.url:
            logger.error("checkout_session_without_url", uid=uid, session_id=mask_id(session.id))
            raise InternalError("Failed to create checkout session")

        logger.info("checkout_session_issued", uid=uid, mode=mode, price_id=price_id)
        return UrlResponse(url=session.url)

    def create_portal_session(self, uid: str) -> UrlResponse:
        """Open the Stripe customer portal for the caller.

        Raises:
            FailedPreconditionError: No record, or no customer ID in it
            InternalError: Stripe failure
        """
        record = self.store.get(uid)
        if record is None:
            raise FailedPreconditionError("No subscription found")
        if not record.customer_id:
            raise FailedPreconditionError("No customer ID found")

        try:
            url = self.gateway.create_portal_session(record.customer_id, self.portal.return_url)
        except GatewayError as e:
            logger.error("portal_session_create_failed", uid=uid, error=str(e))
            raise InternalError("Failed to create portal session") from e

        logger.info("portal_session_issued", uid=uid, customer_id=record.customer_id)
        return UrlResponse(url=url)

    def cancel_subscription(self, uid: str) -> CancelSubscriptionResponse:
        """Cancel the caller's subscription at the end of the current period.

        The record is updated immediately (it must already exist) so the client
        sees the pending cancellation before the webhook arrives.

        Raises:
            FailedPreconditionError: No record, or no subscription ID in it
            InternalError: Stripe or store failure
        """
        record = self.store.get(uid)
        if record is None:
            raise FailedPreconditionError("No active subscription found")
        if not record.subscription_id:
            raise FailedPreconditionError("No subscription ID found")

        try:
            updated = self.gateway.schedule_cancellation(record.subscription_id)
            self.reconciler.mark_cancellation_requested(uid)
        except (GatewayError, SubscriptionNotFoundError) as e:
            logger.error(
                "subscription_cancel_failed",
                uid=uid,
                subscription_id=mask_id(record.subscription_id),
                error=str(e),
            )
            raise InternalError("Failed to cancel subscription") from e

        return CancelSubscriptionResponse(
            cancel_at_period_end=updated.cancel_at_period_end,
            current_period_end=updated.current_period_end,
        )
