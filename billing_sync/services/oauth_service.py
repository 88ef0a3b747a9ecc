"""Todoist OAuth flow.

Builds the Todoist authorize URL carrying a one-time CSRF state, and handles
the redirect back from Todoist by consuming that state. Exchanging the code for
an access token is delegated to a TodoistTokenExchange.
"""

from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlencode

from billing_sync.errors import InternalError
from billing_sync.logging_config import get_logger
from billing_sync.models.api import UrlResponse
from billing_sync.models.settings import OAuthConfig
from billing_sync.repositories.oauth_state_store import OAuthStateError, OAuthStateStore

logger = get_logger(__name__)


class TokenExchangeError(Exception):
    """Raised when the authorization code could not be turned into a token.

    ``reason`` is reported back to the app in the redirect.
    """

    def __init__(self, reason: str):
        super().__init__(f"Todoist token exchange failed: {reason}")
        self.reason = reason


class TodoistTokenExchange(ABC):
    """Exchanges an authorization code and stores the resulting token for a user."""

    @abstractmethod
    def exchange(self, uid: str, code: str) -> None:
        """Raises TokenExchangeError on failure."""


class TodoistOAuthService:
    """Issues Todoist authorize URLs and completes the OAuth callback."""

    def __init__(
            self,
            states: OAuthStateStore,
            client_id: Optional[str],
            settings: Optional[OAuthConfig] = None,
            token_exchange: Optional[TodoistTokenExchange] = None,
    ):
        self.states = states
        self.client_id = client_id
        self.settings = settings or OAuthConfig()
        self.token_exchange = token_exchange

    def authorize_url(self, uid: str) -> UrlResponse:
        """Issue a state for ``uid`` and return the URL to open in the popup.

        Raises:
            InternalError: Client ID not configured
        """
        if not self.client_id:
            logger.error("todoist_client_id_missing")
            raise InternalError("Todoist integration is not configured")

        oauth_state = self.states.issue(uid)
        query = urlencode(
            {"client_id": self.client_id, "scope": self.settings.scope, "state": oauth_state.state}
        )
        return UrlResponse(url=f"{self.settings.authorize_url}?{query}")

    def complete_callback(
            self, code: Optional[str], state: Optional[str], error: Optional[str] = None
    ) -> str:
        """Handle Todoist's redirect and return the app URL to send the browser to.

        The state is consumed before the code is used, so it is spent even when
        the exchange fails.
        """
        if error:
            logger.info("todoist_oauth_denied", error=error)
            return self._redirect(todoist="error", reason=error)
        if not code or not state:
            return self._redirect(todoist="error", reason="missing_params")

        try:
            uid = self.states.consume(state)
        except OAuthStateError as e:
            return self._redirect(todoist="error", reason=e.reason)

        if self.token_exchange is None:
            logger.error("todoist_token_exchange_not_configured", uid=uid)
            return self._redirect(todoist="error", reason="not_configured")

        try:
            self.token_exchange.exchange(uid, code)
        except TokenExchangeError as e:
            logger.error("todoist_token_exchange_failed", uid=uid, reason=e.reason)
            return self._redirect(todoist="error", reason=e.reason)

        logger.info("todoist_connected", uid=uid)
        return self._redirect(todoist="success")

    def _redirect(self, **params: str) -> str:
        return f"{self.settings.app_url}?{urlencode(params)}"
