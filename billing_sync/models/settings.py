"""Service configuration models.

Models for config/billing.yaml. Secrets are not part of the file; they come from
the environment (see billing_sync.config).
"""

from typing import Literal

from pydantic import BaseModel, Field


class CheckoutConfig(BaseModel):
    """Stripe Checkout session settings."""

    success_url: str = Field(
        default="https://pomodorotimer.vip/?checkout=success&session_id={CHECKOUT_SESSION_ID}",
        description="Redirect after a completed checkout; Stripe fills in the session id",
    )
    cancel_url: str = Field(default="https://pomodorotimer.vip/?checkout=canceled")
    trial_period_days: int = Field(default=7, description="Free trial for recurring plans (0 disables)")
    price_id_prefix: str = Field(default="price_", description="Required prefix of accepted price IDs")

    class Config:
        json_schema_extra = {
            "example": {
                "success_url": "https://example.com/?checkout=success&session_id={CHECKOUT_SESSION_ID}",
                "cancel_url": "https://example.com/?checkout=canceled",
                "trial_period_days": 7,
                "price_id_prefix": "price_",
            }
        }


class PortalConfig(BaseModel):
    """Stripe customer portal settings."""

    return_url: str = Field(default="https://pomodorotimer.vip/")


class GatewayConfig(BaseModel):
    """Stripe API settings."""

    api_version: str = Field(default="2025-02-24.acacia", description="Pinned Stripe API version")
    user_metadata_key: str = Field(
        default="firebaseUid", description="Subscription metadata key holding the user ID"
    )
    lifetime_session_lookup_limit: int = Field(
        default=5, description="Recent checkout sessions searched for a lifetime purchase"
    )
    admin_sync_session_limit: int = Field(default=100, description="Checkout sessions scanned by admin sync")


class AccessConfig(BaseModel):
    """Tier derivation settings."""

    monthly_price_pattern: str = Field(default="monthly", description="Substring marking monthly price IDs")
    monthly_price_ids: list[str] = Field(default_factory=list, description="Explicit monthly price IDs")


class OAuthConfig(BaseModel):
    """Todoist OAuth settings."""

    authorize_url: str = Field(default="https://api.todoist.com/oauth/authorize")
    scope: str = Field(default="data:read")
    state_ttl_seconds: int = Field(default=600, description="Lifetime of an issued OAuth state")
    app_url: str = Field(
        default="https://pomodorotimer.vip/", description="Page the OAuth callback redirects back to"
    )


class StoreConfig(BaseModel):
    """Document store backend."""

    backend: Literal["firestore", "memory"] = Field(default="firestore")


class BillingConfig(BaseModel):
    """Complete billing.yaml configuration."""

    checkout: CheckoutConfig = Field(default_factory=CheckoutConfig)
    portal: PortalConfig = Field(default_factory=PortalConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)
    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
