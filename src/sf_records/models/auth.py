"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field

# Tokens are treated as expired this many seconds before their nominal lifetime ends
SAFETY_MARGIN = 300


class TokenResponse(BaseModel):
    """Response from the OAuth2 token endpoint."""
    access_token: str
    instance_url: str | None = None
    id: str | None = None
    token_type: str = "Bearer"
    expires_in: int = 3600
    refresh_token: str | None = None
    signature: str | None = None
    scope: str | None = None
    issued_at: str | int | None = None

    model_config = {"extra": "ignore"}

    def derive_instance_url(self) -> str | None:
        """Instance URL as returned, or the prefix of the identity URL before ``/id/``."""
        if self.instance_url:
            return self.instance_url.rstrip("/")
        if self.id:
            index = self.id.find("/id/")
            if index > 0:
                return self.id[:index]
        return None


class Token(BaseModel):
    """A cached bearer credential. ``issued_at`` is the local clock at acquisition."""
    access_token: str = Field(min_length=1, repr=False)
    instance_url: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int = Field(default=3600, ge=0)
    issued_at: float
    refresh_token: str | None = Field(default=None, repr=False)
    scope: str | None = None
    id: str | None = None
    signature: str | None = Field(default=None, repr=False)

    @property
    def expires_at(self) -> float:
        """Epoch second at which the token stops being served from cache."""
        return self.issued_at + self.expires_in - SAFETY_MARGIN

    def is_expired(self, now: float) -> bool:
        return now - self.issued_at >= self.expires_in - SAFETY_MARGIN


class TokenStatus(BaseModel):
    """Current state of the cached access token."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
    instance_url: str | None = None
    grant_type: str | None = None
