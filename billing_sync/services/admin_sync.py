"""Operator backfill sweep over recent checkout sessions.

Writes records for users whose checkout completed but who have no record yet
(for example because the webhook endpoint was misconfigured at the time). Users
that already have a record are never touched.
"""

from billing_sync.logging_config import get_logger
from billing_sync.models.api import AdminSyncResponse
from billing_sync.services.reconciler import SubscriptionReconciler

logger = get_logger(__name__)


class AdminSync:
    """Backfills missing subscription records from completed checkout sessions."""

    def __init__(self, reconciler: SubscriptionReconciler, session_limit: int = 100):
        self.reconciler = reconciler
        self.store = reconciler.store
        self.gateway = reconciler.gateway
        self.session_limit = session_limit

    def run(self) -> AdminSyncResponse:
        """Sweep the most recent checkout sessions.

        Returns:
            One ``SYNCED`` or ``SKIP`` line per session inspected

        Raises:
            GatewayError: Stripe failure (the sweep stops at the failing session)
        """
        sessions = self.gateway.list_checkout_sessions(limit=self.session_limit)
        lines: list[str] = []

        for session in sessions:
            uid = session.client_reference_id
            if not uid:
                lines.append(f"SKIP: session {session.id} - no client_reference_id")
                continue
            if session.status != "complete":
                lines.append(f"SKIP: session {session.id} - status: {session.status}")
                continue
            if self.store.exists(uid):
                lines.append(f"SKIP: {uid} - already has subscription data")
                continue

            status = self.reconciler.apply_checkout_session(uid, session, source="admin_sync")
            if status is None:
                lines.append(f"SKIP: session {session.id} - mode: {session.mode}")
                continue
            lines.append(f"SYNCED: {uid} -> {status.value} ({session.customer_email})")

        synced = sum(1 for line in lines if line.startswith("SYNCED"))
        logger.info("admin_sync_completed", sessions=len(sessions), synced=synced)
        return AdminSyncResponse(synced=lines)
