"""Client-triggered catch-up after returning from Stripe Checkout.

Webhook delivery is not synchronous with the client's post-checkout redirect, so
the client asks for the session it just completed to be applied directly.
"""

from billing_sync.errors import (
    FailedPreconditionError,
    GatewayError,
    InternalError,
    InvalidArgumentError,
    PermissionDeniedError,
)
from billing_sync.logging_config import get_logger, mask_id
from billing_sync.models.api import SyncCheckoutSessionResponse
from billing_sync.services.reconciler import SubscriptionReconciler

logger = get_logger(__name__)


class CheckoutSync:
    """Applies a completed checkout session owned by the caller."""

    def __init__(self, reconciler: SubscriptionReconciler):
        self.reconciler = reconciler
        self.gateway = reconciler.gateway

    def sync_from_session(self, uid: str, session_id: str) -> SyncCheckoutSessionResponse:
        """Fetch a checkout session and write the record it describes.

        Args:
            uid: Authenticated caller
            session_id: Checkout session ID from the success redirect

        Returns:
            The resulting status ("unknown" for sessions that carry no purchase)

        Raises:
            InvalidArgumentError: Empty session ID
            PermissionDeniedError: Session was created for another user
            FailedPreconditionError: One-time payment not completed
            InternalError: Stripe or store failure
        """
        if not session_id or not isinstance(session_id, str):
            raise InvalidArgumentError("Missing sessionId")

        try:
            session = self.gateway.retrieve_checkout_session(session_id)
        except GatewayError as e:
            logger.error("checkout_sync_failed", uid=uid, session_id=mask_id(session_id), error=str(e))
            raise InternalError("Failed to sync checkout session") from e

        if session.client_reference_id != uid:
            logger.warning(
                "checkout_session_owner_mismatch",
                uid=uid,
                session_id=mask_id(session_id),
            )
            raise PermissionDeniedError("Session does not belong to this user")

        if session.payment_status == "unpaid" and session.mode != "subscription":
            raise FailedPreconditionError("Payment not completed")

        try:
            status = self.reconciler.apply_checkout_session(uid, session)
        except GatewayError as e:
            logger.error("checkout_sync_failed", uid=uid, session_id=mask_id(session_id), error=str(e))
            raise InternalError("Failed to sync checkout session") from e

        if status is None:
            return SyncCheckoutSessionResponse(status="unknown")

        logger.info("checkout_session_synced", uid=uid, status=status.value)
        return SyncCheckoutSessionResponse(status=status.value)
