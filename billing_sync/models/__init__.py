"""Pydantic models for records, Stripe objects, events, configuration and API payloads."""

# Subscription record models
from .subscription import (
    PREMIUM_STATUSES,
    AccessDecision,
    SubscriptionRecord,
    SubscriptionStatus,
    Tier,
    normalize_status,
)

# Stripe object views
from .gateway import (
    GatewayCheckoutSession,
    GatewayCustomer,
    GatewayInvoice,
    GatewaySubscription,
)

# Webhook events
from .events import (
    BillingEvent,
    CheckoutCompletedEvent,
    InvoicePaymentFailedEvent,
    ProcessedEvent,
    SubscriptionDeletedEvent,
    SubscriptionUpdatedEvent,
    UnhandledEvent,
    parse_event,
)

# OAuth
from .oauth import OAuthState

# Configuration
from .settings import (
    AccessConfig,
    BillingConfig,
    CheckoutConfig,
    GatewayConfig,
    OAuthConfig,
    PortalConfig,
    StoreConfig,
)

# Callable payloads
from .api import (
    AdminSyncResponse,
    CallableRequest,
    CancelSubscriptionResponse,
    CreateCheckoutSessionRequest,
    SyncCheckoutSessionRequest,
    SyncCheckoutSessionResponse,
    UrlResponse,
)

__all__ = [
    # Subscription
    "PREMIUM_STATUSES",
    "AccessDecision",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "Tier",
    "normalize_status",
    # Gateway objects
    "GatewayCheckoutSession",
    "GatewayCustomer",
    "GatewayInvoice",
    "GatewaySubscription",
    # Events
    "BillingEvent",
    "CheckoutCompletedEvent",
    "InvoicePaymentFailedEvent",
    "ProcessedEvent",
    "SubscriptionDeletedEvent",
    "SubscriptionUpdatedEvent",
    "UnhandledEvent",
    "parse_event",
    # OAuth
    "OAuthState",
    # Configuration
    "AccessConfig",
    "BillingConfig",
    "CheckoutConfig",
    "GatewayConfig",
    "OAuthConfig",
    "PortalConfig",
    "StoreConfig",
    # API
    "AdminSyncResponse",
    "CallableRequest",
    "CancelSubscriptionResponse",
    "CreateCheckoutSessionRequest",
    "SyncCheckoutSessionRequest",
    "SyncCheckoutSessionResponse",
    "UrlResponse",
]
