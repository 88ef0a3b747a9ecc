"""Integration tests for the callable endpoints.

Firestore is replaced by the in-memory document store and Stripe by a mocked
gateway; everything between the HTTP layer and those two is real.
"""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from firebase_admin import auth

from billing_sync.dependencies import CallerIdentity, build_services, get_caller, get_services
from billing_sync.errors import GatewayError
from billing_sync.main import create_app
from billing_sync.models.gateway import GatewayCustomer
from billing_sync.models.settings import BillingConfig
from billing_sync.models.subscription import SubscriptionRecord, SubscriptionStatus
from billing_sync.repositories.document_store import InMemoryDocumentStore
from billing_sync.services.billing_gateway import StripeGateway


@pytest.fixture
def stripe_gateway():
    return MagicMock(spec=StripeGateway)


@pytest.fixture
def services(stripe_gateway):
    return build_services(
        BillingConfig(),
        InMemoryDocumentStore(),
        stripe_gateway,
        admin_sync_key="admin-key",
        todoist_client_id="client-abc",
    )


@pytest.fixture
def app(services):
    app = create_app()
    app.dependency_overrides[get_services] = lambda: services
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Client signed in as user-1."""
    app.dependency_overrides[get_caller] = lambda: CallerIdentity(uid="user-1", email="user@example.com")
    return TestClient(app)


@pytest.fixture
def anonymous_client(app):
    return TestClient(app)


def call(client, name, data=None):
    return client.post(f"/callable/{name}", json={"data": data})


class TestAuthentication:
    @pytest.mark.parametrize(
        "name",
        [
            "createCheckoutSession",
            "createPortalSession",
            "cancelSubscription",
            "syncCheckoutSession",
            "verifySubscription",
            "todoistOauthInit",
        ],
    )
    def test_missing_token_is_rejected_before_io(self, anonymous_client, stripe_gateway, services, name):
        response = call(anonymous_client, name, {"priceId": "price_x", "mode": "subscription", "sessionId": "cs_1"})

        assert response.status_code == 401
        assert response.json()["error"]["status"] == "UNAUTHENTICATED"
        assert stripe_gateway.method_calls == []

    def test_invalid_token(self, anonymous_client):
        with patch("billing_sync.dependencies.verify_id_token", side_effect=auth.InvalidIdTokenError("bad token")):
            response = anonymous_client.post(
                "/callable/verifySubscription",
                json={"data": None},
                headers={"Authorization": "Bearer not-a-token"},
            )

        assert response.status_code == 401
        assert response.json()["error"]["status"] == "UNAUTHENTICATED"

    def test_valid_token(self, anonymous_client):
        claims = {"uid": "user-9", "email": None}
        with patch("billing_sync.dependencies.verify_id_token", return_value=claims):
            response = anonymous_client.post(
                "/callable/verifySubscription",
                json={"data": None},
                headers={"Authorization": "Bearer good-token"},
            )

        assert response.status_code == 200
        assert response.json()["result"]["hasAccess"] is False


class TestCheckoutCallables:
    def test_create_checkout_session(self, client, stripe_gateway):
        session = MagicMock(id="cs_test_1", url="https://checkout.stripe.test/c/cs_test_1")
        stripe_gateway.create_checkout_session.return_value = session

        response = call(client, "createCheckoutSession", {"priceId": "price_premium_monthly", "mode": "subscription"})

        assert response.status_code == 200
        assert response.json() == {"result": {"url": "https://checkout.stripe.test/c/cs_test_1"}}
        params = stripe_gateway.create_checkout_session.call_args.kwargs
        assert params["client_reference_id"] == "user-1"
        assert params["customer_email"] == "user@example.com"
        assert params["subscription_data"]["trial_period_days"] == 7

    def test_invalid_mode(self, client, stripe_gateway):
        response = call(client, "createCheckoutSession", {"priceId": "price_premium_monthly", "mode": "setup"})

        assert response.status_code == 400
        assert response.json()["error"]["status"] == "INVALID_ARGUMENT"
        stripe_gateway.create_checkout_session.assert_not_called()

    def test_wrong_type_is_invalid_argument(self, client):
        response = call(client, "createCheckoutSession", {"priceId": 42, "mode": "payment"})

        assert response.status_code == 400
        assert response.json()["error"]["status"] == "INVALID_ARGUMENT"

    def test_sync_checkout_session(self, client, stripe_gateway, services, make_session, make_subscription):
        stripe_gateway.retrieve_checkout_session.return_value = make_session()
        stripe_gateway.retrieve_subscription.return_value = make_subscription(status="trialing")

        response = call(client, "syncCheckoutSession", {"sessionId": "cs_test_1"})

        assert response.status_code == 200
        assert response.json() == {"result": {"status": "trialing"}}
        assert services.subscriptions.get("user-1").status == SubscriptionStatus.TRIALING

    def test_sync_foreign_session(self, client, stripe_gateway, services, make_session):
        stripe_gateway.retrieve_checkout_session.return_value = make_session(uid="user-2")

        response = call(client, "syncCheckoutSession", {"sessionId": "cs_test_1"})

        assert response.status_code == 403
        assert response.json()["error"]["status"] == "PERMISSION_DENIED"
        assert services.subscriptions.get("user-2") is None


class TestSubscriptionCallables:
    def test_portal_without_record(self, client, stripe_gateway):
        response = call(client, "createPortalSession")

        assert response.status_code == 400
        assert response.json()["error"]["status"] == "FAILED_PRECONDITION"
        stripe_gateway.create_portal_session.assert_not_called()

    def test_portal(self, client, stripe_gateway, services):
        services.subscriptions.merge("user-1", SubscriptionRecord(status=SubscriptionStatus.ACTIVE, customer_id="cus_1"))
        stripe_gateway.create_portal_session.return_value = "https://billing.stripe.test/p/1"

        response = call(client, "createPortalSession")

        assert response.json() == {"result": {"url": "https://billing.stripe.test/p/1"}}

    def test_cancel(self, client, stripe_gateway, services, make_subscription):
        services.subscriptions.merge(
            "user-1", SubscriptionRecord(status=SubscriptionStatus.ACTIVE, subscription_id="sub_123")
        )
        stripe_gateway.schedule_cancellation.return_value = make_subscription(cancel_at_period_end=True)

        response = call(client, "cancelSubscription")

        assert response.status_code == 200
        assert response.json() == {"result": {"cancelAtPeriodEnd": True, "currentPeriodEnd": 1767225600}}
        assert services.subscriptions.get("user-1").cancel_at_period_end is True

    def test_cancel_gateway_failure(self, client, stripe_gateway, services):
        services.subscriptions.merge(
            "user-1", SubscriptionRecord(status=SubscriptionStatus.ACTIVE, subscription_id="sub_123")
        )
        stripe_gateway.schedule_cancellation.side_effect = GatewayError("subscriptions.update", RuntimeError("x"))

        response = call(client, "cancelSubscription")

        assert response.status_code == 500
        assert response.json() == {"error": {"status": "INTERNAL", "message": "Failed to cancel subscription"}}

    def test_verify_self_heals_once(self, client, stripe_gateway, make_subscription):
        stripe_gateway.find_customer_by_email.return_value = GatewayCustomer(id="cus_1", email="user@example.com")
        stripe_gateway.latest_subscription.return_value = make_subscription(
            status="past_due", price_id="price_premium_yearly"
        )

        first = call(client, "verifySubscription")
        stripe_gateway.reset_mock()
        second = call(client, "verifySubscription")

        expected = {
            "hasAccess": True,
            "status": "past_due",
            "tier": "yearly",
            "gracePeriod": True,
            "currentPeriodEnd": 1767225600,
            "cancelAtPeriodEnd": False,
        }
        assert first.json() == {"result": expected}
        assert second.json() == {"result": expected}
        assert stripe_gateway.method_calls == []

    def test_todoist_oauth_init(self, client):
        response = call(client, "todoistOauthInit")

        assert response.status_code == 200
        url = response.json()["result"]["url"]
        assert url.startswith("https://api.todoist.com/oauth/authorize?")
        assert "client_id=client-abc" in url


class TestTodoistCallback:
    def test_init_then_callback_spends_state(self, client, anonymous_client, services):
        services.oauth.token_exchange = MagicMock()
        url = call(client, "todoistOauthInit").json()["result"]["url"]
        state = parse_qs(urlparse(url).query)["state"][0]

        first = anonymous_client.get(
            "/todoist/oauth-callback", params={"code": "code-123", "state": state}, follow_redirects=False
        )
        second = anonymous_client.get(
            "/todoist/oauth-callback", params={"code": "code-123", "state": state}, follow_redirects=False
        )

        assert first.status_code == 302
        assert first.headers["location"] == "https://pomodorotimer.vip/?todoist=success"
        assert second.headers["location"] == "https://pomodorotimer.vip/?todoist=error&reason=invalid_state"
        services.oauth.token_exchange.exchange.assert_called_once_with("user-1", "code-123")

    def test_missing_params(self, anonymous_client):
        response = anonymous_client.get("/todoist/oauth-callback", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://pomodorotimer.vip/?todoist=error&reason=missing_params"


class TestServiceEndpoints:
    def test_root(self, anonymous_client):
        response = anonymous_client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "billing-sync"

    def test_request_id_header(self, anonymous_client):
        response = anonymous_client.get("/")

        assert "X-Request-ID" in response.headers
