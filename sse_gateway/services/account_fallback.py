"""
Account Fallback Module

Classifies upstream failures into fallback decisions and computes account state
transitions. All functions are pure: records are never mutated, new ones are returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from sse_gateway.common.time import add_ms, ensure_utc, utc_now
from sse_gateway.config import get_settings
from sse_gateway.domain.account import Account, LastError

RATE_LIMIT_KEYWORDS = (
    "rate limit",
    "too many requests",
    "quota exceeded",
    "capacity",
    "overloaded",
)

TRANSIENT_STATUSES = frozenset({408, 500, 502, 503, 504})


class ErrorKind(str, Enum):
    """Failure taxonomy used for retry and cooldown decisions."""

    REQUEST_NOT_ALLOWED = "request_not_allowed"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILURE = "auth_failure"
    QUOTA_OR_PERMISSION = "quota_or_permission"
    NOT_FOUND = "not_found"
    TRANSIENT_UPSTREAM = "transient_upstream"
    HARD_CLIENT_ERROR = "hard_client_error"


@dataclass(frozen=True)
class FallbackDecision:
    """
    Fallback Decision

    Attributes:
        should_fallback: Whether to rotate to another account/model
        cooldown_ms: Cooldown to apply to the failing account (0 = none)
        new_backoff_level: Escalated backoff level, only set for rate-limit class errors
        kind: Classified failure kind
    """

    should_fallback: bool
    cooldown_ms: int
    kind: ErrorKind
    new_backoff_level: Optional[int] = None


def get_quota_cooldown(backoff_level: int = 0) -> int:
    """
    Exponential cooldown for rate limits.

    Level 0: base, level 1: 2 x base, ... capped at BACKOFF_MAX_MS.
    """
    settings = get_settings()
    cooldown = settings.BACKOFF_BASE_MS * (2 ** max(backoff_level, 0))
    return min(cooldown, settings.BACKOFF_MAX_MS)


def _rate_limited(backoff_level: int) -> FallbackDecision:
    settings = get_settings()
    return FallbackDecision(
        should_fallback=True,
        cooldown_ms=get_quota_cooldown(backoff_level),
        kind=ErrorKind.RATE_LIMITED,
        new_backoff_level=min(backoff_level + 1, settings.BACKOFF_MAX_LEVEL),
    )


def check_fallback_error(
    status: int,
    error_text: Optional[str] = None,
    backoff_level: int = 0,
) -> FallbackDecision:
    """
    Check whether an error should trigger account fallback.

    Error text patterns take priority over status codes; the first matching rule wins.

    Args:
        status: HTTP status code
        error_text: Error message text
        backoff_level: Current backoff level of the account

    Returns:
        FallbackDecision: Classification and cooldown
    """
    settings = get_settings()

    if error_text:
        lower_error = error_text.lower()

        if "request not allowed" in lower_error:
            return FallbackDecision(
                should_fallback=True,
                cooldown_ms=settings.COOLDOWN_REQUEST_NOT_ALLOWED_MS,
                kind=ErrorKind.REQUEST_NOT_ALLOWED,
            )

        if any(keyword in lower_error for keyword in RATE_LIMIT_KEYWORDS):
            return _rate_limited(backoff_level)

    if status == 401:
        return FallbackDecision(
            should_fallback=True,
            cooldown_ms=settings.COOLDOWN_UNAUTHORIZED_MS,
            kind=ErrorKind.AUTH_FAILURE,
        )

    if status in (402, 403):
        return FallbackDecision(
            should_fallback=True,
            cooldown_ms=settings.COOLDOWN_PAYMENT_REQUIRED_MS,
            kind=ErrorKind.QUOTA_OR_PERMISSION,
        )

    if status == 404:
        return FallbackDecision(
            should_fallback=True,
            cooldown_ms=settings.COOLDOWN_NOT_FOUND_MS,
            kind=ErrorKind.NOT_FOUND,
        )

    if status == 429:
        return _rate_limited(backoff_level)

    if status in TRANSIENT_STATUSES:
        return FallbackDecision(
            should_fallback=True,
            cooldown_ms=settings.COOLDOWN_TRANSIENT_MS,
            kind=ErrorKind.TRANSIENT_UPSTREAM,
        )

    return FallbackDecision(
        should_fallback=False,
        cooldown_ms=0,
        kind=ErrorKind.HARD_CLIENT_ERROR,
    )


def is_account_unavailable(
    unavailable_until: Optional[datetime],
    now: Optional[datetime] = None,
) -> bool:
    """Whether a cooldown timestamp has not yet expired."""
    if unavailable_until is None:
        return False
    return ensure_utc(unavailable_until) > (now or utc_now())


def get_unavailable_until(cooldown_ms: int, now: Optional[datetime] = None) -> datetime:
    return add_ms(now or utc_now(), cooldown_ms)


def filter_available_accounts(
    accounts: Iterable[Account],
    exclude_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Account]:
    """Accounts not in cooldown, optionally excluding one account id."""
    now = now or utc_now()
    return [
        account
        for account in accounts
        if account.id != exclude_id and account.is_usable(now)
    ]


def reset_account_state(account: Optional[Account]) -> Optional[Account]:
    """
    Reset account state after a successful request.

    Clears cooldown and last error, resets backoff level to 0.
    """
    if account is None:
        return None
    return account.model_copy(
        update={
            "rate_limited_until": None,
            "backoff_level": 0,
            "last_error": None,
            "status": "active",
        }
    )


def apply_error_state(
    account: Optional[Account],
    status: int,
    error_text: Optional[str],
    now: Optional[datetime] = None,
) -> Optional[Account]:
    """
    Apply an upstream failure to an account.

    Args:
        account: Current account record
        status: HTTP status code
        error_text: Error message
        now: Current time (defaults to utc_now())

    Returns:
        Account: New record with cooldown, backoff level and last error set
    """
    if account is None:
        return None

    now = now or utc_now()
    decision = check_fallback_error(status, error_text, account.backoff_level)
    backoff_level = (
        decision.new_backoff_level
        if decision.new_backoff_level is not None
        else account.backoff_level
    )

    return account.model_copy(
        update={
            "rate_limited_until": (
                get_unavailable_until(decision.cooldown_ms, now)
                if decision.cooldown_ms > 0
                else None
            ),
            "backoff_level": backoff_level,
            "last_error": LastError(status=status, message=error_text, timestamp=now),
            "status": "error",
        }
    )
