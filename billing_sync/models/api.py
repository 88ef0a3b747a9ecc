"""Payloads of the callable endpoints.

Request models validate shape only (types); value rules such as the accepted
checkout modes live in the services so the error taxonomy stays in one place.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class CallableRequest(BaseModel):
    """Firebase callable envelope: ``{"data": {...}}``."""

    data: Optional[dict[str, Any]] = Field(default=None)


class CreateCheckoutSessionRequest(BaseModel):
    price_id: Optional[str] = Field(None, alias="priceId", description="Stripe price ID (price_...)")
    mode: Optional[str] = Field(None, description="'subscription' or 'payment'")

    class Config:
        populate_by_name = True
        json_schema_extra = {"example": {"priceId": "price_premium_monthly", "mode": "subscription"}}


class SyncCheckoutSessionRequest(BaseModel):
    session_id: Optional[str] = Field(None, alias="sessionId", description="Checkout session ID (cs_...)")

    class Config:
        populate_by_name = True
        json_schema_extra = {"example": {"sessionId": "cs_test_a1b2c3"}}


class UrlResponse(BaseModel):
    url: str = Field(..., description="URL the client should navigate to")


class CancelSubscriptionResponse(BaseModel):
    cancel_at_period_end: bool = Field(..., alias="cancelAtPeriodEnd")
    current_period_end: Optional[int] = Field(None, alias="currentPeriodEnd")

    class Config:
        populate_by_name = True


class SyncCheckoutSessionResponse(BaseModel):
    status: str = Field(..., description="Resulting record status, or 'unknown'")


class AdminSyncResponse(BaseModel):
    synced: list[str] = Field(default_factory=list, description="One SYNCED/SKIP line per checkout session")
