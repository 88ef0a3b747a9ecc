"""Webhook intake - authenticate, dedupe, then reconcile.

Intake is split in two phases. ``receive`` runs before the HTTP response: it
verifies the signature and admits the event into the ledger. ``process`` runs
after the response has been sent and applies the event; its failures are logged
and never reach Stripe, so a failed reconcile is not retried.
"""

from dataclasses import dataclass
from typing import Optional

from billing_sync.logging_config import bind_context, get_logger, unbind_context
from billing_sync.models.events import BillingEvent
from billing_sync.repositories.event_ledger import EventLedger
from billing_sync.services.billing_gateway import StripeGateway
from billing_sync.services.reconciler import SubscriptionReconciler

logger = get_logger(__name__)


@dataclass
class WebhookReceipt:
    """Outcome of the synchronous intake phase."""

    event: BillingEvent
    admitted: bool


class WebhookProcessor:
    """Runs the two phases of webhook intake."""

    def __init__(self, gateway: StripeGateway, ledger: EventLedger, reconciler: SubscriptionReconciler):
        self.gateway = gateway
        self.ledger = ledger
        self.reconciler = reconciler

    def receive(self, payload: bytes, signature: Optional[str]) -> WebhookReceipt:
        """Verify and admit one delivery.

        Raises:
            WebhookSignatureError: Missing header, bad signature or undecodable body
            WebhookConfigurationError: Signing secret not configured
        """
        event = self.gateway.construct_event(payload, signature)
        admitted = self.ledger.admit(event.id, event.type)
        return WebhookReceipt(event=event, admitted=admitted)

    def process(self, event: BillingEvent) -> None:
        """Reconcile an admitted event. Never raises."""
        bind_context(event_id=event.id, event_type=event.type)
        try:
            self.reconciler.reconcile(event)
        except Exception as e:
            logger.error("webhook_processing_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
        finally:
            unbind_context("event_id", "event_type")
