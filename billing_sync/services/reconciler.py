"""Subscription reconciler - the single writer of subscription records.

Responsibilities:
- Apply Stripe webhook events to the per-user record (merge writes only)
- Apply completed checkout sessions for the client pull path
- Backfill records recovered from Stripe by the self-healing resolver
- Mirror a requested cancellation ahead of the next webhook

Event ordering: Stripe does not guarantee delivery order. A subscription that
the record shows as deleted is terminal, so a later ``updated`` event for the
same subscription is dropped, as is any ``updated`` event created before the
newest event already applied. A completed checkout for a deleted subscription
is dropped too, and no write moves ``lastEventAt`` backwards. Lifetime records
are never downgraded by recurring-subscription events.

Deletions and payment failures for a subscription other than the recorded one
are ignored as superseded. An ``updated`` event for another subscription is
applied and replaces ``subscriptionId``: that is how a user who resubscribes
after a cancellation moves onto the new subscription.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from billing_sync.logging_config import get_logger, mask_id
from billing_sync.models.events import (
    BillingEvent,
    CheckoutCompletedEvent,
    InvoicePaymentFailedEvent,
    SubscriptionDeletedEvent,
    SubscriptionUpdatedEvent,
)
from billing_sync.models.gateway import GatewayCheckoutSession, GatewaySubscription
from billing_sync.models.subscription import SubscriptionRecord, SubscriptionStatus
from billing_sync.repositories.subscription_store import SubscriptionStore
from billing_sync.services import record_mapping
from billing_sync.services.billing_gateway import StripeGateway
from billing_sync.state_logger import log_backfill, log_event_dropped, log_subscription_status_change

logger = get_logger(__name__)

_UNSET: Any = object()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _latest(event_created: Optional[int], current: Optional[SubscriptionRecord]) -> Optional[int]:
    """lastEventAt to write; never moves backwards."""
    if event_created is None or current is None or current.last_event_at is None:
        return event_created
    return max(event_created, current.last_event_at)


class SubscriptionReconciler:
    """Computes canonical subscription records from Stripe events and objects.

    Args:
        store: Subscription record store
        gateway: Stripe gateway (used to fetch full subscription objects)
        user_metadata_key: Subscription metadata key that carries the user ID
    """

    def __init__(
            self,
            store: SubscriptionStore,
            gateway: StripeGateway,
            user_metadata_key: str = "firebaseUid",
    ):
        self.store = store
        self.gateway = gateway
        self.user_metadata_key = user_metadata_key
        self._handlers: dict[type, Callable[[Any], None]] = {
            CheckoutCompletedEvent: self._on_checkout_completed,
            SubscriptionUpdatedEvent: self._on_subscription_updated,
            SubscriptionDeletedEvent: self._on_subscription_deleted,
            InvoicePaymentFailedEvent: self._on_invoice_payment_failed,
        }

    def reconcile(self, event: BillingEvent) -> None:
        """Apply one webhook event.

        Events with a missing user or subscription reference are logged and
        dropped. Gateway and store failures propagate.
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.info("unhandled_event_type", event_id=event.id, event_type=event.type)
            return
        handler(event)

    # ==================== Webhook events ====================

    def _on_checkout_completed(self, event: CheckoutCompletedEvent) -> None:
        uid = event.session.client_reference_id
        if not uid:
            log_event_dropped(event.id, event.type, "missing_client_reference_id")
            return
        self.apply_checkout_session(
            uid,
            event.session,
            updated_at=event.occurred_at,
            event_created=event.created,
            source=event.type,
            event_id=event.id,
        )

    def _on_subscription_updated(self, event: SubscriptionUpdatedEvent) -> None:
        subscription = event.subscription
        uid = subscription.metadata_value(self.user_metadata_key)
        if not uid:
            log_event_dropped(event.id, event.type, "missing_user_metadata")
            return

        current = self.store.get(uid)
        reason = self._stale_update_reason(current, subscription, event.created)
        if reason:
            log_event_dropped(event.id, event.type, reason, uid=uid, subscription_id=mask_id(subscription.id))
            return

        patch = record_mapping.subscription_fields(
            subscription, event.occurred_at, event_created=event.created
        )
        self._write(uid, patch, event.type, previous=current, event_id=event.id)

    def _on_subscription_deleted(self, event: SubscriptionDeletedEvent) -> None:
        subscription = event.subscription
        uid = subscription.metadata_value(self.user_metadata_key)
        if not uid:
            log_event_dropped(event.id, event.type, "missing_user_metadata")
            return

        current = self.store.get(uid)
        reason = self._foreign_subscription_reason(current, subscription.id)
        if reason:
            log_event_dropped(event.id, event.type, reason, uid=uid, subscription_id=mask_id(subscription.id))
            return

        patch = record_mapping.canceled_fields(
            subscription.id, event.occurred_at, _latest(event.created, current)
        )
        self._write(uid, patch, event.type, previous=current, event_id=event.id)

    def _on_invoice_payment_failed(self, event: InvoicePaymentFailedEvent) -> None:
        subscription_id = event.invoice.subscription
        if not subscription_id:
            log_event_dropped(event.id, event.type, "missing_subscription")
            return

        subscription = self.gateway.retrieve_subscription(subscription_id)
        uid = subscription.metadata_value(self.user_metadata_key)
        if not uid:
            log_event_dropped(event.id, event.type, "missing_user_metadata")
            return

        current = self.store.get(uid)
        reason = self._foreign_subscription_reason(current, subscription.id)
        if reason:
            log_event_dropped(event.id, event.type, reason, uid=uid, subscription_id=mask_id(subscription.id))
            return

        patch = record_mapping.payment_failed_fields(subscription.status, event.occurred_at)
        self._write(uid, patch, event.type, previous=current, event_id=event.id)

    @staticmethod
    def _foreign_subscription_reason(
            current: Optional[SubscriptionRecord], subscription_id: str
    ) -> Optional[str]:
        """Why an event about ``subscription_id`` must not touch ``current``, if it must not."""
        if current is None:
            return None
        if current.is_lifetime:
            return "lifetime_record"
        if current.subscription_id and current.subscription_id != subscription_id:
            return "superseded_subscription"
        return None

    @staticmethod
    def _is_deleted(current: Optional[SubscriptionRecord], subscription_id: str) -> bool:
        return (
                current is not None
                and current.status == SubscriptionStatus.CANCELED
                and bool(current.canceled_at)
                and current.subscription_id == subscription_id
        )

    def _stale_update_reason(
            self,
            current: Optional[SubscriptionRecord],
            subscription: GatewaySubscription,
            event_created: Optional[int],
    ) -> Optional[str]:
        if current is None:
            return None
        if current.is_lifetime:
            return "lifetime_record"
        if self._is_deleted(current, subscription.id):
            return "subscription_already_deleted"
        if event_created is not None and current.last_event_at is not None:
            if event_created < current.last_event_at:
                return "older_than_record"
        return None

    # ==================== Pull path and backfill ====================

    def apply_checkout_session(
            self,
            uid: str,
            session: GatewayCheckoutSession,
            updated_at: Optional[str] = None,
            event_created: Optional[int] = None,
            source: str = "checkout_sync",
            **context: Any,
    ) -> Optional[SubscriptionStatus]:
        """Write the record described by a completed checkout session.

        Recurring sessions fetch the full subscription from Stripe; one-time
        sessions become a lifetime record.

        Returns:
            The status written, the recorded status if the subscription was
            already deleted, or None if the session carried nothing to apply
        """
        updated_at = updated_at or _now()

        if session.mode == "subscription":
            if not session.subscription:
                logger.warning("checkout_session_missing_subscription", uid=uid, session_id=mask_id(session.id))
                return None
            current = self.store.get(uid)
            if self._is_deleted(current, session.subscription):
                log_event_dropped(
                    context.get("event_id"),
                    source,
                    "subscription_already_deleted",
                    uid=uid,
                    subscription_id=mask_id(session.subscription),
                )
                return current.status
            subscription = self.gateway.retrieve_subscription(session.subscription)
            patch = record_mapping.new_subscription_fields(
                subscription, session.customer, updated_at, _latest(event_created, current)
            )
        elif session.mode == "payment":
            current = self.store.get(uid)
            patch = record_mapping.lifetime_fields(session.payment_intent, session.customer, updated_at)
        else:
            logger.info("checkout_mode_ignored", uid=uid, mode=session.mode, session_id=mask_id(session.id))
            return None

        self._write(uid, patch, source, previous=current, session_id=mask_id(session.id), **context)
        return patch.status

    def backfill_subscription(
            self, uid: str, subscription: GatewaySubscription, customer_id: str
    ) -> SubscriptionRecord:
        """Write a record recovered from the customer's latest Stripe subscription."""
        patch = record_mapping.new_subscription_fields(subscription, customer_id, _now())
        self._write(uid, patch, "backfill", previous=None)
        log_backfill(uid, patch.status, customer_id, "subscription", subscription_id=mask_id(subscription.id))
        return patch

    def backfill_lifetime(
            self, uid: str, session: GatewayCheckoutSession, customer_id: str
    ) -> SubscriptionRecord:
        """Write a lifetime record recovered from a paid one-time checkout session."""
        patch = record_mapping.lifetime_fields(session.payment_intent, customer_id, _now())
        self._write(uid, patch, "backfill", previous=None)
        log_backfill(uid, patch.status, customer_id, "lifetime", session_id=mask_id(session.id))
        return patch

    def mark_cancellation_requested(self, uid: str) -> None:
        """Mirror cancel_at_period_end into an existing record ahead of the webhook.

        Raises:
            SubscriptionNotFoundError: If the user has no record
        """
        self.store.update(uid, record_mapping.cancellation_requested_fields(_now()))
        logger.info("cancellation_mirrored", uid=uid)

    # ==================== Writes ====================

    def _write(
            self,
            uid: str,
            patch: SubscriptionRecord,
            source: str,
            previous: Any = _UNSET,
            **context: Any,
    ) -> None:
        if previous is _UNSET:
            previous = self.store.get(uid)

        self.store.merge(uid, patch)

        old_status = previous.status if previous is not None else None
        if "status" in patch.model_fields_set and old_status != patch.status:
            log_subscription_status_change(uid, old_status, patch.status, source, **context)
        else:
            logger.debug("subscription_record_merged", uid=uid, source=source, fields=sorted(patch.to_document()))
