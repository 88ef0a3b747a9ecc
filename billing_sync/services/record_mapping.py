"""Shared mapping from Stripe objects to subscription record fields.

Used by the webhook reconciler, the checkout pull sync and the self-healing
resolver so the three entry paths can never drift apart. Pure functions; each
returns a SubscriptionRecord whose explicitly-set fields form the merge patch.
"""

from typing import Optional

from billing_sync.models.gateway import GatewaySubscription
from billing_sync.models.subscription import SubscriptionRecord, SubscriptionStatus, normalize_status


def subscription_fields(
        subscription: GatewaySubscription,
        updated_at: str,
        customer_id: Optional[str] = None,
        event_created: Optional[int] = None,
) -> SubscriptionRecord:
    """Record fields describing a recurring subscription.

    Args:
        subscription: Subscription as returned by Stripe
        updated_at: Write timestamp (ISO 8601)
        customer_id: Customer to record; omitted from the patch when None
        event_created: Creation time of the Stripe event being applied, if any
    """
    return SubscriptionRecord(**_subscription_dict(subscription, updated_at, customer_id, event_created))


def _subscription_dict(subscription, updated_at, customer_id, event_created) -> dict:
    fields = dict(
        subscription_id=subscription.id,
        status=normalize_status(subscription.status),
        price_id=subscription.price_id,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
        updated_at=updated_at,
    )
    if customer_id is not None:
        fields["customer_id"] = customer_id
    if event_created is not None:
        fields["last_event_at"] = event_created
    return fields


def new_subscription_fields(
        subscription: GatewaySubscription,
        customer_id: Optional[str],
        updated_at: str,
        event_created: Optional[int] = None,
) -> SubscriptionRecord:
    """Fields for a subscription that (re)starts the user's billing.

    Same as subscription_fields, but also clears a lifetime payment intent and
    any earlier deletion marker so the record describes exactly one state.
    """
    fields = _subscription_dict(subscription, updated_at, customer_id, event_created)
    return SubscriptionRecord(**fields, payment_intent_id=None, canceled_at=None)


def lifetime_fields(
        payment_intent_id: Optional[str],
        customer_id: Optional[str],
        updated_at: str,
) -> SubscriptionRecord:
    """Fields for a one-time (lifetime) purchase; clears any subscription ID.

    A None customer is left out of the patch so a stored customer survives.
    """
    fields = dict(
        status=SubscriptionStatus.LIFETIME,
        payment_intent_id=payment_intent_id,
        subscription_id=None,
        updated_at=updated_at,
    )
    if customer_id is not None:
        fields["customer_id"] = customer_id
    return SubscriptionRecord(**fields)


def canceled_fields(
        subscription_id: str, canceled_at: str, event_created: Optional[int] = None
) -> SubscriptionRecord:
    """Fields for a deleted subscription. Deletion is terminal for that subscription ID."""
    fields = dict(
        status=SubscriptionStatus.CANCELED,
        subscription_id=subscription_id,
        canceled_at=canceled_at,
        updated_at=canceled_at,
    )
    if event_created is not None:
        fields["last_event_at"] = event_created
    return SubscriptionRecord(**fields)


def payment_failed_fields(provider_status: str, failed_at: str) -> SubscriptionRecord:
    return SubscriptionRecord(
        status=normalize_status(provider_status),
        last_payment_error=failed_at,
        updated_at=failed_at,
    )


def cancellation_requested_fields(updated_at: str) -> SubscriptionRecord:
    return SubscriptionRecord(cancel_at_period_end=True, updated_at=updated_at)
