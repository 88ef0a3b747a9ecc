"""One-time OAuth CSRF state."""

from datetime import datetime

from pydantic import BaseModel, Field


class OAuthState(BaseModel):
    """Stored at ``todoistOAuthStates/{state}`` until first consumption."""

    state: str = Field(..., description="Random state token sent through the OAuth redirect")
    uid: str = Field(..., description="User who started the OAuth flow")
    created_at: datetime = Field(..., alias="createdAt")
    expires_at: datetime = Field(..., alias="expiresAt")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    class Config:
        populate_by_name = True
