"""Stripe webhook events as a tagged union over the event type.

Only the event types the reconciler acts on get a dedicated model; every other
type parses to ``UnhandledEvent`` and is reconciled as a no-op.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from .gateway import GatewayCheckoutSession, GatewayInvoice, GatewaySubscription


class BillingEventBase(BaseModel):
    """Envelope fields shared by all events."""

    id: str = Field(..., description="Globally unique Stripe event ID (evt_...)")
    type: str = Field(..., description="Stripe event type")
    created: Optional[int] = Field(None, description="Event creation time (Unix seconds)")

    @property
    def occurred_at(self) -> str:
        """Event creation time as ISO 8601; falls back to now for events without one."""
        if self.created is None:
            return datetime.now(timezone.utc).isoformat()
        return datetime.fromtimestamp(self.created, tz=timezone.utc).isoformat()


class CheckoutCompletedEvent(BillingEventBase):
    type: Literal["checkout.session.completed"] = "checkout.session.completed"
    session: GatewayCheckoutSession


class SubscriptionUpdatedEvent(BillingEventBase):
    type: Literal["customer.subscription.updated"] = "customer.subscription.updated"
    subscription: GatewaySubscription


class SubscriptionDeletedEvent(BillingEventBase):
    type: Literal["customer.subscription.deleted"] = "customer.subscription.deleted"
    subscription: GatewaySubscription


class InvoicePaymentFailedEvent(BillingEventBase):
    type: Literal["invoice.payment_failed"] = "invoice.payment_failed"
    invoice: GatewayInvoice


class UnhandledEvent(BillingEventBase):
    """Any event type the reconciler does not act on."""

    pass


BillingEvent = Union[
    CheckoutCompletedEvent,
    SubscriptionUpdatedEvent,
    SubscriptionDeletedEvent,
    InvoicePaymentFailedEvent,
    UnhandledEvent,
]

# event type -> (model, attribute holding data.object)
_EVENT_MODELS: dict[str, tuple[type, str]] = {
    "checkout.session.completed": (CheckoutCompletedEvent, "session"),
    "customer.subscription.updated": (SubscriptionUpdatedEvent, "subscription"),
    "customer.subscription.deleted": (SubscriptionDeletedEvent, "subscription"),
    "invoice.payment_failed": (InvoicePaymentFailedEvent, "invoice"),
}


def parse_event(payload: dict[str, Any]) -> BillingEvent:
    """Build the typed event for a Stripe event payload.

    Args:
        payload: Event as a plain dict (``id``, ``type``, ``created``, ``data.object``)

    Returns:
        The matching event model, or UnhandledEvent for other types

    Raises:
        pydantic.ValidationError: If a handled event's object is malformed
    """
    event_type = payload.get("type", "")
    envelope = {"id": payload.get("id"), "type": event_type, "created": payload.get("created")}
    entry = _EVENT_MODELS.get(event_type)
    if entry is None:
        return UnhandledEvent(**envelope)
    model, attribute = entry
    data_object = (payload.get("data") or {}).get("object") or {}
    return model(**envelope, **{attribute: data_object})


class ProcessedEvent(BaseModel):
    """Dedupe tombstone stored at ``stripe_events/{event_id}``."""

    processed: bool = Field(default=True)
    type: str = Field(..., description="Stripe event type")
    created_at: str = Field(..., alias="createdAt", description="When the event was first admitted (ISO 8601)")

    class Config:
        populate_by_name = True
