"""Subscription record and access decision models.

The record is stored with camelCase keys at ``users/{uid}/subscription/status``;
Python code uses the snake_case attribute names.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class SubscriptionStatus(str, Enum):
    """Canonical lifecycle state of a user's premium access."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"  # Payment failed, access retained (grace period)
    CANCELED = "canceled"
    LIFETIME = "lifetime"  # One-time purchase, never renews
    NONE = "none"


# Stripe statuses that have no canonical counterpart
_PROVIDER_STATUS_ALIASES = {
    "incomplete": SubscriptionStatus.NONE,
    "paused": SubscriptionStatus.NONE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.CANCELED,
}

PREMIUM_STATUSES = frozenset(
    {
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.TRIALING,
        SubscriptionStatus.PAST_DUE,
        SubscriptionStatus.LIFETIME,
    }
)


def normalize_status(value: Any) -> SubscriptionStatus:
    """Map a provider or stored status string onto SubscriptionStatus.

    Unknown or missing values become NONE.
    """
    if isinstance(value, SubscriptionStatus):
        return value
    if not value:
        return SubscriptionStatus.NONE
    try:
        return SubscriptionStatus(value)
    except ValueError:
        return _PROVIDER_STATUS_ALIASES.get(value, SubscriptionStatus.NONE)


class Tier(str, Enum):
    """Client-facing plan tier."""

    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


class SubscriptionRecord(BaseModel):
    """Per-user subscription snapshot.

    Instances double as partial updates: only fields that were explicitly set are
    written by ``to_document()``, so a record built from a single event merges
    over the stored one without clobbering fields the event does not carry.
    """

    status: SubscriptionStatus = Field(default=SubscriptionStatus.NONE, description="Lifecycle state")
    subscription_id: Optional[str] = Field(None, alias="subscriptionId", description="Stripe subscription ID")
    price_id: Optional[str] = Field(None, alias="priceId", description="Stripe price ID, used to derive tier")
    customer_id: Optional[str] = Field(None, alias="customerId", description="Stripe customer ID")
    current_period_end: Optional[int] = Field(
        None, alias="currentPeriodEnd", description="End of current billing period (Unix seconds)"
    )
    cancel_at_period_end: Optional[bool] = Field(
        None, alias="cancelAtPeriodEnd", description="Cancellation requested, access kept until period end"
    )
    payment_intent_id: Optional[str] = Field(
        None, alias="paymentIntentId", description="Payment intent of a lifetime purchase"
    )
    canceled_at: Optional[str] = Field(None, alias="canceledAt", description="When the subscription was deleted")
    last_payment_error: Optional[str] = Field(
        None, alias="lastPaymentError", description="When the most recent invoice payment failed"
    )
    last_event_at: Optional[int] = Field(
        None, alias="lastEventAt", description="Creation time of the newest applied Stripe event (Unix seconds)"
    )
    updated_at: Optional[str] = Field(None, alias="updatedAt", description="Last write time (ISO 8601)")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> SubscriptionStatus:
        return normalize_status(value)

    def to_document(self) -> dict[str, Any]:
        """Serialize explicitly-set fields with their stored (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "SubscriptionRecord":
        return cls.model_validate(data)

    @property
    def is_lifetime(self) -> bool:
        return self.status == SubscriptionStatus.LIFETIME

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "status": "active",
                "subscriptionId": "sub_1Q2w3E4r5T6y",
                "priceId": "price_premium_monthly",
                "customerId": "cus_R2d2C3p0",
                "currentPeriodEnd": 1767225600,
                "cancelAtPeriodEnd": False,
                "updatedAt": "2026-01-01T00:00:00+00:00",
            }
        }


class AccessDecision(BaseModel):
    """Answer to "may this user use premium features right now"."""

    has_access: bool = Field(..., alias="hasAccess")
    status: SubscriptionStatus = Field(...)
    tier: Optional[Tier] = Field(None)
    grace_period: bool = Field(default=False, alias="gracePeriod")
    current_period_end: Optional[int] = Field(None, alias="currentPeriodEnd")
    cancel_at_period_end: bool = Field(default=False, alias="cancelAtPeriodEnd")

    @classmethod
    def no_access(cls) -> "AccessDecision":
        return cls(has_access=False, status=SubscriptionStatus.NONE)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    class Config:
        populate_by_name = True
