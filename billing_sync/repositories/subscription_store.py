"""Subscription record store - one record per user at ``users/{uid}/subscription/status``.

All writes are merges; records are never deleted.
"""

from typing import Optional

from billing_sync.models.subscription import SubscriptionRecord
from billing_sync.repositories.document_store import DocumentNotFoundError, DocumentStore


class SubscriptionNotFoundError(Exception):
    """Raised when updating a user that has no subscription record."""

    pass


def subscription_path(uid: str) -> str:
    """Document path of a user's subscription record."""
    return f"users/{uid}/subscription/status"


class SubscriptionStore:
    """Typed access to per-user subscription records."""

    def __init__(self, documents: DocumentStore):
        self._documents = documents

    def get(self, uid: str) -> Optional[SubscriptionRecord]:
        """Get a user's record.

        Args:
            uid: User ID

        Returns:
            SubscriptionRecord if the user has one, None otherwise
        """
        data = self._documents.get(subscription_path(uid))
        if not data:
            return None
        return SubscriptionRecord.from_document(data)

    def exists(self, uid: str) -> bool:
        return self.get(uid) is not None

    def merge(self, uid: str, patch: SubscriptionRecord) -> None:
        """Merge the explicitly-set fields of ``patch`` into the user's record.

        Creates the record if the user has none.
        """
        self._documents.set(subscription_path(uid), patch.to_document(), merge=True)

    def update(self, uid: str, patch: SubscriptionRecord) -> None:
        """Merge ``patch`` into an existing record.

        Raises:
            SubscriptionNotFoundError: If the user has no record
        """
        try:
            self._documents.update(subscription_path(uid), patch.to_document())
        except DocumentNotFoundError as e:
            raise SubscriptionNotFoundError(f"No subscription record for user: {uid}") from e
