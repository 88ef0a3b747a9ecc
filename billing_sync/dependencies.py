"""FastAPI dependencies - service container, Firebase clients and caller identity.

Process-wide handles (Firebase app, Firestore client, Stripe gateway) are built
lazily on first use and shared across requests. Routes receive them through
``get_services``, which tests replace via ``app.dependency_overrides``.
"""

from dataclasses import dataclass
from typing import Any, Optional

import firebase_admin
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth, firestore

from billing_sync.config import get_config
from billing_sync.errors import UnauthenticatedError
from billing_sync.logging_config import bind_context, get_logger
from billing_sync.models.settings import BillingConfig
from billing_sync.repositories.document_store import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
)
from billing_sync.repositories.event_ledger import EventLedger
from billing_sync.repositories.oauth_state_store import OAuthStateStore
from billing_sync.repositories.subscription_store import SubscriptionStore
from billing_sync.services.admin_sync import AdminSync
from billing_sync.services.billing_gateway import StripeGateway
from billing_sync.services.billing_service import BillingService
from billing_sync.services.checkout_sync import CheckoutSync
from billing_sync.services.oauth_service import TodoistOAuthService, TodoistTokenExchange
from billing_sync.services.reconciler import SubscriptionReconciler
from billing_sync.services.verification import SubscriptionResolver
from billing_sync.services.webhook_processor import WebhookProcessor

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ==================== Service container ====================


@dataclass
class Services:
    """Everything the HTTP layer needs, wired once per process."""

    settings: BillingConfig
    subscriptions: SubscriptionStore
    ledger: EventLedger
    gateway: StripeGateway
    reconciler: SubscriptionReconciler
    checkout_sync: CheckoutSync
    resolver: SubscriptionResolver
    billing: BillingService
    oauth: TodoistOAuthService
    admin_sync: AdminSync
    webhooks: WebhookProcessor
    admin_sync_key: Optional[str] = None


def build_services(
        settings: BillingConfig,
        documents: DocumentStore,
        gateway: StripeGateway,
        admin_sync_key: Optional[str] = None,
        todoist_client_id: Optional[str] = None,
        todoist_token_exchange: Optional[TodoistTokenExchange] = None,
) -> Services:
    """Wire the repositories and services around one document store and gateway."""
    subscriptions = SubscriptionStore(documents)
    ledger = EventLedger(documents)
    oauth_states = OAuthStateStore(documents, ttl_seconds=settings.oauth.state_ttl_seconds)
    reconciler = SubscriptionReconciler(
        subscriptions, gateway, user_metadata_key=settings.gateway.user_metadata_key
    )
    return Services(
        settings=settings,
        subscriptions=subscriptions,
        ledger=ledger,
        gateway=gateway,
        reconciler=reconciler,
        checkout_sync=CheckoutSync(reconciler),
        resolver=SubscriptionResolver(
            reconciler,
            access=settings.access,
            lifetime_session_lookup_limit=settings.gateway.lifetime_session_lookup_limit,
        ),
        billing=BillingService(
            reconciler,
            checkout=settings.checkout,
            portal=settings.portal,
            user_metadata_key=settings.gateway.user_metadata_key,
        ),
        oauth=TodoistOAuthService(
            oauth_states, todoist_client_id, settings.oauth, token_exchange=todoist_token_exchange
        ),
        admin_sync=AdminSync(reconciler, session_limit=settings.gateway.admin_sync_session_limit),
        webhooks=WebhookProcessor(gateway, ledger, reconciler),
        admin_sync_key=admin_sync_key,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Get the global service container (built on first use)."""
    global _services
    if _services is None:
        config = get_config()
        settings = config.settings
        if settings.store.backend == "memory":
            documents: DocumentStore = InMemoryDocumentStore()
        else:
            documents = FirestoreDocumentStore(get_firestore())
        gateway = StripeGateway(
            config.stripe_secret_key,
            webhook_secret=config.stripe_webhook_secret,
            api_version=settings.gateway.api_version,
        )
        _services = build_services(
            settings,
            documents,
            gateway,
            admin_sync_key=config.admin_sync_key,
            todoist_client_id=config.todoist_client_id,
        )
        logger.info("services_initialized", store_backend=settings.store.backend)
    return _services


def reset_services() -> None:
    """Drop the global service container (for tests)."""
    global _services
    _services = None


# ==================== Firebase ====================

_firebase_app: Optional[firebase_admin.App] = None
_firestore_client = None


def get_firebase_app() -> firebase_admin.App:
    """Get or initialize the Firebase Admin app (application default credentials)."""
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    try:
        _firebase_app = firebase_admin.get_app()
    except ValueError:
        _firebase_app = firebase_admin.initialize_app()
        logger.info("firebase_admin_initialized")
    return _firebase_app


def get_firestore():
    """Get the Firestore client (singleton)."""
    global _firestore_client
    if _firestore_client is None:
        get_firebase_app()
        _firestore_client = firestore.client()
        logger.info("firestore_client_initialized")
    return _firestore_client


# ==================== Caller identity ====================


@dataclass
class CallerIdentity:
    """Authenticated caller of a callable endpoint."""

    uid: str
    email: Optional[str] = None


def verify_id_token(token: str) -> dict[str, Any]:
    """Verify a Firebase ID token and return its claims."""
    get_firebase_app()
    return auth.verify_id_token(token, check_revoked=True)


async def get_caller(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CallerIdentity:
    """Resolve the caller from ``Authorization: Bearer <Firebase ID token>``.

    Raises:
        UnauthenticatedError: Missing, invalid, expired or revoked token
    """
    if credentials is None:
        raise UnauthenticatedError("Must be signed in")

    try:
        claims = verify_id_token(credentials.credentials)
    except (auth.RevokedIdTokenError, auth.ExpiredIdTokenError, auth.InvalidIdTokenError) as e:
        logger.warning("id_token_rejected", reason=type(e).__name__)
        raise UnauthenticatedError("Must be signed in") from e

    caller = CallerIdentity(uid=claims["uid"], email=claims.get("email"))
    bind_context(uid=caller.uid)
    return caller
