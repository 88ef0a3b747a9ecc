"""Tests for the typed views of Stripe objects."""

from billing_sync.models.gateway import (
    GatewayCheckoutSession,
    GatewayInvoice,
    GatewaySubscription,
    expandable_id,
)


class TestExpandableId:
    def test_plain_id(self):
        assert expandable_id("cus_123") == "cus_123"

    def test_expanded_object(self):
        assert expandable_id({"id": "cus_123", "object": "customer"}) == "cus_123"

    def test_missing(self):
        assert expandable_id(None) is None


class TestGatewaySubscription:
    def test_flattens_first_item_price(self, subscription_payload):
        subscription = GatewaySubscription.model_validate(subscription_payload(price_id="price_premium_yearly"))

        assert subscription.price_id == "price_premium_yearly"
        assert subscription.current_period_end == 1767225600
        assert subscription.metadata_value("firebaseUid") == "user-1"

    def test_period_end_from_item(self, subscription_payload):
        """Newer API versions carry the period end on the subscription item only."""
        payload = subscription_payload()
        del payload["current_period_end"]
        payload["items"]["data"][0]["current_period_end"] = 1800000000

        subscription = GatewaySubscription.model_validate(payload)

        assert subscription.current_period_end == 1800000000

    def test_no_items(self):
        subscription = GatewaySubscription.model_validate({"id": "sub_1", "status": "canceled", "metadata": None})

        assert subscription.price_id is None
        assert subscription.metadata == {}
        assert subscription.metadata_value("firebaseUid") is None

    def test_expanded_customer(self, subscription_payload):
        payload = subscription_payload()
        payload["customer"] = {"id": "cus_expanded", "object": "customer"}

        assert GatewaySubscription.model_validate(payload).customer == "cus_expanded"


class TestGatewayCheckoutSession:
    def test_collapses_expanded_references(self, session_payload):
        payload = session_payload(mode="payment", subscription=None)
        payload["payment_intent"] = {"id": "pi_123", "object": "payment_intent"}

        session = GatewayCheckoutSession.model_validate(payload)

        assert session.payment_intent == "pi_123"
        assert session.subscription is None

    def test_paid_one_time(self, make_session):
        assert make_session(mode="payment", payment_status="paid").is_paid_one_time
        assert not make_session(mode="payment", payment_status="unpaid").is_paid_one_time
        assert not make_session(mode="subscription", payment_status="paid").is_paid_one_time


class TestGatewayInvoice:
    def test_top_level_subscription(self):
        invoice = GatewayInvoice.model_validate({"id": "in_1", "subscription": "sub_123"})
        assert invoice.subscription == "sub_123"

    def test_subscription_under_parent(self):
        invoice = GatewayInvoice.model_validate(
            {
                "id": "in_1",
                "customer": "cus_123",
                "parent": {"subscription_details": {"subscription": "sub_456"}},
            }
        )
        assert invoice.subscription == "sub_456"

    def test_one_off_invoice(self):
        assert GatewayInvoice.model_validate({"id": "in_1"}).subscription is None
