"""Tests for the shared Stripe-to-record mapping."""

from billing_sync.models.subscription import SubscriptionStatus
from billing_sync.services import record_mapping

UPDATED_AT = "2026-01-01T00:00:00+00:00"


class TestSubscriptionFields:
    def test_maps_subscription(self, make_subscription):
        subscription = make_subscription(status="trialing", cancel_at_period_end=True)

        patch = record_mapping.subscription_fields(subscription, UPDATED_AT)

        assert patch.to_document() == {
            "subscriptionId": "sub_123",
            "status": "trialing",
            "priceId": "price_premium_monthly",
            "currentPeriodEnd": 1767225600,
            "cancelAtPeriodEnd": True,
            "updatedAt": UPDATED_AT,
        }

    def test_customer_and_event_time_only_when_given(self, make_subscription):
        subscription = make_subscription()

        patch = record_mapping.subscription_fields(
            subscription, UPDATED_AT, customer_id="cus_999", event_created=1760000000
        )

        document = patch.to_document()
        assert document["customerId"] == "cus_999"
        assert document["lastEventAt"] == 1760000000

    def test_provider_status_is_normalized(self, make_subscription):
        patch = record_mapping.subscription_fields(make_subscription(status="unpaid"), UPDATED_AT)
        assert patch.status == SubscriptionStatus.CANCELED

        patch = record_mapping.subscription_fields(make_subscription(status="incomplete"), UPDATED_AT)
        assert patch.status == SubscriptionStatus.NONE

    def test_new_subscription_clears_lifetime_and_deletion_markers(self, make_subscription):
        patch = record_mapping.new_subscription_fields(make_subscription(), "cus_123", UPDATED_AT)

        document = patch.to_document()
        assert document["paymentIntentId"] is None
        assert document["canceledAt"] is None
        assert document["customerId"] == "cus_123"


class TestOneShotFields:
    def test_lifetime_clears_subscription_id(self):
        document = record_mapping.lifetime_fields("pi_123", "cus_123", UPDATED_AT).to_document()

        assert document == {
            "status": "lifetime",
            "paymentIntentId": "pi_123",
            "customerId": "cus_123",
            "subscriptionId": None,
            "updatedAt": UPDATED_AT,
        }

    def test_lifetime_without_customer_omits_customer_id(self):
        document = record_mapping.lifetime_fields("pi_123", None, UPDATED_AT).to_document()

        assert "customerId" not in document
        assert document["status"] == "lifetime"

    def test_canceled_fields(self):
        document = record_mapping.canceled_fields("sub_123", UPDATED_AT, 1760000000).to_document()

        assert document == {
            "status": "canceled",
            "subscriptionId": "sub_123",
            "canceledAt": UPDATED_AT,
            "updatedAt": UPDATED_AT,
            "lastEventAt": 1760000000,
        }

    def test_payment_failed_fields(self):
        document = record_mapping.payment_failed_fields("past_due", UPDATED_AT).to_document()

        assert document == {"status": "past_due", "lastPaymentError": UPDATED_AT, "updatedAt": UPDATED_AT}

    def test_cancellation_requested_does_not_touch_status(self):
        document = record_mapping.cancellation_requested_fields(UPDATED_AT).to_document()

        assert document == {"cancelAtPeriodEnd": True, "updatedAt": UPDATED_AT}
