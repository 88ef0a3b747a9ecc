"""Typed views of the Stripe objects the reconciler reads.

Stripe payloads differ between API versions (period end moved onto subscription
items, invoice subscription moved under ``parent``) and expandable fields arrive
either as IDs or as nested objects. These models normalize both shapes.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


def expandable_id(value: Any) -> Optional[str]:
    """Return the ID of an expandable Stripe field (ID string or expanded object)."""
    if isinstance(value, dict):
        return value.get("id")
    return value


def _list_data(value: Any) -> list:
    if isinstance(value, dict):
        return value.get("data") or []
    return value or []


class GatewaySubscription(BaseModel):
    """Stripe subscription."""

    id: str = Field(..., description="Subscription ID (sub_...)")
    status: str = Field(..., description="Provider status (active, trialing, past_due, ...)")
    customer: Optional[str] = Field(None, description="Customer ID")
    price_id: Optional[str] = Field(None, description="Price of the first subscription item")
    current_period_end: Optional[int] = Field(None, description="Period end (Unix seconds)")
    cancel_at_period_end: bool = Field(default=False)
    metadata: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        items = _list_data(data.get("items"))
        first_item = items[0] if items else {}
        if data.get("price_id") is None:
            data["price_id"] = expandable_id(first_item.get("price"))
        if data.get("current_period_end") is None:
            data["current_period_end"] = first_item.get("current_period_end")
        data["customer"] = expandable_id(data.get("customer"))
        data["metadata"] = data.get("metadata") or {}
        return data

    def metadata_value(self, key: str) -> Optional[str]:
        return self.metadata.get(key) or None


class GatewayCheckoutSession(BaseModel):
    """Stripe Checkout session."""

    id: str = Field(..., description="Checkout session ID (cs_...)")
    mode: str = Field(..., description="'subscription', 'payment' or 'setup'")
    status: Optional[str] = Field(None, description="'open', 'complete' or 'expired'")
    payment_status: Optional[str] = Field(None, description="'paid', 'unpaid' or 'no_payment_required'")
    client_reference_id: Optional[str] = Field(None, description="Firebase UID set at session creation")
    customer: Optional[str] = Field(None)
    customer_email: Optional[str] = Field(None)
    subscription: Optional[str] = Field(None)
    payment_intent: Optional[str] = Field(None)
    url: Optional[str] = Field(None, description="Hosted checkout URL (open sessions only)")

    @model_validator(mode="before")
    @classmethod
    def _collapse_expanded(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("customer", "subscription", "payment_intent"):
            data[key] = expandable_id(data.get(key))
        return data

    @property
    def is_paid_one_time(self) -> bool:
        return self.mode == "payment" and self.payment_status == "paid"


class GatewayInvoice(BaseModel):
    """Stripe invoice (only what payment-failure handling needs)."""

    id: str = Field(...)
    customer: Optional[str] = Field(None)
    subscription: Optional[str] = Field(None)

    @model_validator(mode="before")
    @classmethod
    def _locate_subscription(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        subscription = expandable_id(data.get("subscription"))
        if subscription is None:
            details = (data.get("parent") or {}).get("subscription_details") or {}
            subscription = expandable_id(details.get("subscription"))
        data["subscription"] = subscription
        data["customer"] = expandable_id(data.get("customer"))
        return data


class GatewayCustomer(BaseModel):
    """Stripe customer."""

    id: str = Field(...)
    email: Optional[str] = Field(None)
