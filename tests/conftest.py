"""Shared fixtures: in-memory stores, a mocked Stripe gateway and Stripe payload factories."""

from unittest.mock import MagicMock

import pytest

from billing_sync.models.events import parse_event
from billing_sync.models.gateway import GatewayCheckoutSession, GatewaySubscription
from billing_sync.repositories.document_store import InMemoryDocumentStore
from billing_sync.repositories.event_ledger import EventLedger
from billing_sync.repositories.subscription_store import SubscriptionStore
from billing_sync.services.billing_gateway import StripeGateway
from billing_sync.services.reconciler import SubscriptionReconciler

PERIOD_END = 1767225600


@pytest.fixture
def documents():
    """Fresh in-memory document store."""
    store = InMemoryDocumentStore()
    yield store
    store.clear()


@pytest.fixture
def store(documents):
    return SubscriptionStore(documents)


@pytest.fixture
def ledger(documents):
    return EventLedger(documents)


@pytest.fixture
def gateway():
    """Stripe gateway double; every method is a MagicMock."""
    return MagicMock(spec=StripeGateway)


@pytest.fixture
def reconciler(store, gateway):
    return SubscriptionReconciler(store, gateway)


@pytest.fixture
def subscription_payload():
    """Build a Stripe subscription object as a dict."""

    def _build(
            sub_id="sub_123",
            status="active",
            price_id="price_premium_monthly",
            customer="cus_123",
            uid="user-1",
            current_period_end=PERIOD_END,
            cancel_at_period_end=False,
    ):
        metadata = {"firebaseUid": uid} if uid else {}
        return {
            "id": sub_id,
            "object": "subscription",
            "status": status,
            "customer": customer,
            "cancel_at_period_end": cancel_at_period_end,
            "current_period_end": current_period_end,
            "metadata": metadata,
            "items": {"object": "list", "data": [{"id": "si_1", "price": {"id": price_id}}]},
        }

    return _build


@pytest.fixture
def make_subscription(subscription_payload):
    """Build a GatewaySubscription."""

    def _build(**kwargs):
        return GatewaySubscription.model_validate(subscription_payload(**kwargs))

    return _build


@pytest.fixture
def session_payload():
    """Build a Stripe checkout session object as a dict."""

    def _build(
            session_id="cs_test_1",
            mode="subscription",
            uid="user-1",
            status="complete",
            payment_status="paid",
            customer="cus_123",
            subscription="sub_123",
            payment_intent=None,
            customer_email="user@example.com",
    ):
        return {
            "id": session_id,
            "object": "checkout.session",
            "mode": mode,
            "status": status,
            "payment_status": payment_status,
            "client_reference_id": uid,
            "customer": customer,
            "customer_email": customer_email,
            "subscription": subscription,
            "payment_intent": payment_intent,
        }

    return _build


@pytest.fixture
def make_session(session_payload):
    """Build a GatewayCheckoutSession."""

    def _build(**kwargs):
        return GatewayCheckoutSession.model_validate(session_payload(**kwargs))

    return _build


@pytest.fixture
def make_event():
    """Build a typed webhook event from an event type and its data.object."""

    def _build(event_type, data_object, event_id="evt_1", created=1760000000):
        return parse_event(
            {
                "id": event_id,
                "object": "event",
                "type": event_type,
                "created": created,
                "data": {"object": data_object},
            }
        )

    return _build
