"""Todoist OAuth redirect endpoint.

Implements:
- GET /todoist/oauth-callback?code=...&state=...&error=... - registered as the
  redirect URI in the Todoist app console
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from billing_sync.dependencies import Services, get_services

router = APIRouter(tags=["Todoist"], prefix="/todoist")


@router.get("/oauth-callback", summary="Complete the Todoist OAuth flow")
def oauth_callback(
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
        services: Services = Depends(get_services),
) -> RedirectResponse:
    """Consume the OAuth state and redirect back to the app with the outcome."""
    url = services.oauth.complete_callback(code, state, error)
    return RedirectResponse(url, status_code=302)
