"""One-time OAuth state tokens at ``todoistOAuthStates/{state}``.

A state is deleted on first consumption whatever the outcome, so a replayed
callback can never reuse it.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from billing_sync.logging_config import get_logger
from billing_sync.models.oauth import OAuthState
from billing_sync.repositories.document_store import DocumentStore

logger = get_logger(__name__)


class OAuthStateError(Exception):
    """Raised when a state token cannot be consumed.

    ``reason`` is "invalid_state" or "expired".
    """

    def __init__(self, reason: str):
        super().__init__(f"OAuth state rejected: {reason}")
        self.reason = reason


def oauth_state_path(state: str) -> str:
    return f"todoistOAuthStates/{state}"


class OAuthStateStore:
    """Issues and consumes OAuth CSRF state tokens."""

    def __init__(self, documents: DocumentStore, ttl_seconds: int = 600):
        self._documents = documents
        self._ttl = timedelta(seconds=ttl_seconds)

    def issue(self, uid: str, now: Optional[datetime] = None) -> OAuthState:
        """Create a fresh state token bound to ``uid``."""
        created_at = now or datetime.now(timezone.utc)
        oauth_state = OAuthState(
            state=str(uuid.uuid4()),
            uid=uid,
            created_at=created_at,
            expires_at=created_at + self._ttl,
        )
        self._documents.set(
            oauth_state_path(oauth_state.state),
            oauth_state.model_dump(mode="json", by_alias=True, exclude={"state"}),
        )
        logger.info("oauth_state_issued", uid=uid, expires_at=oauth_state.expires_at.isoformat())
        return oauth_state

    def consume(self, state: str, now: Optional[datetime] = None) -> str:
        """Consume a state token and return the user ID it was issued to.

        Raises:
            OAuthStateError: If the state is unknown, already used, or expired
        """
        data = self._documents.pop(oauth_state_path(state))
        if data is None:
            logger.warning("oauth_state_invalid")
            raise OAuthStateError("invalid_state")

        oauth_state = OAuthState(state=state, **data)
        if oauth_state.is_expired(now or datetime.now(timezone.utc)):
            logger.warning("oauth_state_expired", uid=oauth_state.uid)
            raise OAuthStateError("expired")

        logger.info("oauth_state_consumed", uid=oauth_state.uid)
        return oauth_state.uid
