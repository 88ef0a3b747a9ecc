"""Event ledger - at-most-once admission of Stripe webhook events.

A tombstone at ``stripe_events/{event_id}`` is created the first time an event
ID is seen and never updated or deleted. Its existence means "processed or in
flight"; admission relies on the store's atomic create, so two concurrent
redeliveries of one event cannot both be admitted.
"""

from datetime import datetime, timezone
from typing import Optional

from billing_sync.logging_config import get_logger
from billing_sync.models.events import ProcessedEvent
from billing_sync.repositories.document_store import DocumentStore

logger = get_logger(__name__)


def event_path(event_id: str) -> str:
    """Document path of an event tombstone."""
    return f"stripe_events/{event_id}"


class EventLedger:
    """Dedupes inbound billing events by event ID."""

    def __init__(self, documents: DocumentStore):
        self._documents = documents

    def admit(self, event_id: str, event_type: str, now: Optional[datetime] = None) -> bool:
        """Record an event as processed if it has not been seen before.

        Args:
            event_id: Stripe event ID
            event_type: Stripe event type (stored for auditing)
            now: Admission time (defaults to current UTC time)

        Returns:
            True on first sight of the event ID, False for any redelivery
        """
        admitted_at = (now or datetime.now(timezone.utc)).isoformat()
        tombstone = ProcessedEvent(type=event_type, created_at=admitted_at)
        admitted = self._documents.create(
            event_path(event_id), tombstone.model_dump(mode="json", by_alias=True)
        )
        if admitted:
            logger.info("event_admitted", event_id=event_id, event_type=event_type)
        else:
            logger.info("event_already_processed", event_id=event_id, event_type=event_type)
        return admitted
