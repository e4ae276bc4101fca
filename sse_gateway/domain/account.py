"""
Account Domain Model

Immutable account records; state transitions return new records
(see sse_gateway.services.account_fallback).
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from sse_gateway.common.time import ensure_utc, utc_now


class Credentials(BaseModel):
    """Provider credentials supplied by the credential store."""

    access_token: Optional[str] = Field(None, description="OAuth access token")
    refresh_token: Optional[str] = Field(None, description="OAuth refresh token")
    project_id: Optional[str] = Field(None, description="Cloud Code project id")
    api_key: Optional[str] = Field(None, description="Static API key")
    expires_at: Optional[datetime] = Field(None, description="Access token expiry")

    model_config = ConfigDict(frozen=True)


class LastError(BaseModel):
    """Last upstream failure observed for an account."""

    status: int
    message: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(frozen=True)


class Account(BaseModel):
    """Provider Account"""

    id: str = Field(..., min_length=1, description="Account ID")
    provider: str = Field(..., min_length=1, description="Provider ID")
    credentials: Credentials = Field(default_factory=Credentials)
    # Excluded from selection until this instant
    rate_limited_until: Optional[datetime] = None
    backoff_level: int = Field(0, ge=0)
    last_error: Optional[LastError] = None
    status: Literal["active", "error"] = "active"

    model_config = ConfigDict(frozen=True)

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """Whether the account has no unexpired cooldown."""
        if self.rate_limited_until is None:
            return True
        return ensure_utc(self.rate_limited_until) <= (now or utc_now())
