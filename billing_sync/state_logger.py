"""Record change logging for subscription records.

Tracks status transitions with before/after values for debugging and auditing.
"""

from typing import Any, Optional

from billing_sync.logging_config import get_logger

logger = get_logger(__name__)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def log_subscription_status_change(
    uid: str,
    old_status: Any,
    new_status: Any,
    source: str,
    **extra_context: Any,
) -> None:
    """Log a subscription status transition.

    Args:
        uid: User ID
        old_status: Previous status (None when the record is new)
        new_status: New status
        source: Entry path that caused the write (webhook event type, checkout_sync, backfill, ...)
        **extra_context: Additional context (subscription_id, event_id, ...)
    """
    logger.info(
        "subscription_status_changed",
        uid=uid,
        old_status=_text(old_status),
        new_status=_text(new_status),
        source=source,
        **extra_context,
    )


def log_backfill(
    uid: str,
    status: Any,
    customer_id: Optional[str],
    kind: str,
    **extra_context: Any,
) -> None:
    """Log a record repaired from Stripe after a store miss.

    Args:
        uid: User ID
        status: Status written
        customer_id: Stripe customer the record was recovered from
        kind: "subscription" or "lifetime"
    """
    logger.info(
        "subscription_backfilled",
        uid=uid,
        status=_text(status),
        customer_id=customer_id,
        kind=kind,
        **extra_context,
    )


def log_event_dropped(event_id: Optional[str], event_type: str, reason: str, **extra_context: Any) -> None:
    """Log an event that was intentionally not applied."""
    logger.warning(
        "billing_event_dropped",
        event_id=event_id,
        event_type=event_type,
        reason=reason,
        **extra_context,
    )
