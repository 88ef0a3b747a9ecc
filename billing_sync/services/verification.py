"""Server-side subscription verification with self-healing backfill.

The record store is treated as a cache of Stripe's truth, repaired lazily on a
miss: when a user has no record, Stripe is searched by the user's email and any
subscription or paid lifetime purchase found there is written back. A user who
has paid is therefore never locked out by a lost webhook, and once backfilled
later verifications never reach Stripe.
"""

from typing import Optional

from billing_sync.errors import GatewayError
from billing_sync.logging_config import get_logger
from billing_sync.models.settings import AccessConfig
from billing_sync.models.subscription import AccessDecision
from billing_sync.services.access_evaluator import derive_access
from billing_sync.services.reconciler import SubscriptionReconciler

logger = get_logger(__name__)


class SubscriptionResolver:
    """Answers verification requests from the store, falling back to Stripe."""

    def __init__(
            self,
            reconciler: SubscriptionReconciler,
            access: Optional[AccessConfig] = None,
            lifetime_session_lookup_limit: int = 5,
    ):
        self.reconciler = reconciler
        self.store = reconciler.store
        self.gateway = reconciler.gateway
        self.access = access or AccessConfig()
        self.lifetime_session_lookup_limit = lifetime_session_lookup_limit

    def verify(self, uid: str, email: Optional[str]) -> AccessDecision:
        """Return the caller's access decision.

        Args:
            uid: Authenticated caller
            email: Caller's verified email, used to find a Stripe customer on a miss

        Returns:
            AccessDecision; the no-access decision when nothing can be found
        """
        record = self.store.get(uid)
        if record is not None:
            return derive_access(record, self.access)

        if not email:
            logger.debug("verification_miss_without_email", uid=uid)
            return AccessDecision.no_access()

        try:
            return self._heal(uid, email)
        except GatewayError as e:
            logger.error("self_heal_lookup_failed", uid=uid, error=str(e), exc_info=True)
            return AccessDecision.no_access()

    def _heal(self, uid: str, email: str) -> AccessDecision:
        customer = self.gateway.find_customer_by_email(email)
        if customer is None:
            logger.info("self_heal_no_customer", uid=uid)
            return AccessDecision.no_access()

        subscription = self.gateway.latest_subscription(customer.id)
        if subscription is not None:
            record = self.reconciler.backfill_subscription(uid, subscription, customer.id)
            return derive_access(record, self.access)

        sessions = self.gateway.list_checkout_sessions(
            customer_id=customer.id, limit=self.lifetime_session_lookup_limit
        )
        lifetime_session = next((s for s in sessions if s.is_paid_one_time), None)
        if lifetime_session is not None:
            record = self.reconciler.backfill_lifetime(uid, lifetime_session, customer.id)
            return derive_access(record, self.access)

        logger.info("self_heal_nothing_found", uid=uid, customer_id=customer.id)
        return AccessDecision.no_access()
