"""Access evaluation - pure mapping from a stored record to an AccessDecision."""

from typing import Optional

from billing_sync.models.settings import AccessConfig
from billing_sync.models.subscription import (
    PREMIUM_STATUSES,
    AccessDecision,
    SubscriptionRecord,
    SubscriptionStatus,
    Tier,
)


def derive_tier(record: SubscriptionRecord, access: Optional[AccessConfig] = None) -> Optional[Tier]:
    """Derive the plan tier of a record.

    Lifetime records are always LIFETIME. Otherwise the price ID decides:
    a configured monthly price or one containing the monthly pattern is MONTHLY,
    any other price is YEARLY, and no price means no tier.
    """
    access = access or AccessConfig()
    if record.status == SubscriptionStatus.LIFETIME:
        return Tier.LIFETIME
    if not record.price_id:
        return None
    if record.price_id in access.monthly_price_ids or access.monthly_price_pattern in record.price_id:
        return Tier.MONTHLY
    return Tier.YEARLY


def derive_access(record: SubscriptionRecord, access: Optional[AccessConfig] = None) -> AccessDecision:
    """Map a subscription record to the client-facing access decision. No I/O."""
    return AccessDecision(
        has_access=record.status in PREMIUM_STATUSES,
        status=record.status,
        tier=derive_tier(record, access),
        grace_period=record.status == SubscriptionStatus.PAST_DUE,
        current_period_end=record.current_period_end,
        cancel_at_period_end=bool(record.cancel_at_period_end),
    )
