"""
Retry Duration Parsing

Derives how long to wait before retrying a rate-limited upstream call, from standard
rate-limit headers or from a provider's natural-language quota message.
"""

from __future__ import annotations

import json
import re
import time
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, Optional

_QUOTA_RESET_RE = re.compile(r"reset after (\d+h)?(\d+m)?(\d+s)?", re.IGNORECASE)

_UNIT_MS = {"h": 3_600_000, "m": 60_000, "s": 1_000}


def parse_quota_reset(text: Any) -> Optional[int]:
    """
    Parse "reset after 2h7m23s" style quota messages.

    Any subset of the three units may be present. Returns the total in milliseconds,
    or None when nothing matched or the total is zero.
    """
    if not isinstance(text, str) or not text:
        return None

    match = _QUOTA_RESET_RE.search(text)
    if not match:
        return None

    total_ms = 0
    for group in match.groups():
        if group:
            total_ms += int(group[:-1]) * _UNIT_MS[group[-1].lower()]

    return total_ms if total_ms > 0 else None


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # httpx.Headers is already case-insensitive; plain dicts are not
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None


def _positive_int(value: str) -> Optional[int]:
    try:
        number = int(value.strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_retry_headers(
    headers: Optional[Mapping[str, str]],
    now: Optional[float] = None,
) -> Optional[int]:
    """
    Derive a wait in milliseconds from rate-limit headers.

    Precedence: Retry-After (seconds or HTTP date), X-RateLimit-Reset-After (seconds),
    X-RateLimit-Reset (unix seconds). Returns None when no positive wait is found.

    Args:
        headers: Response headers
        now: Current unix time in seconds (defaults to time.time())
    """
    if not headers:
        return None
    now = time.time() if now is None else now

    retry_after = _header(headers, "retry-after")
    if retry_after:
        seconds = _positive_int(retry_after)
        if seconds is not None:
            return seconds * 1000
        try:
            date = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            date = None
        if date is not None:
            diff = int((date.timestamp() - now) * 1000)
            return diff if diff > 0 else None

    reset_after = _header(headers, "x-ratelimit-reset-after")
    if reset_after:
        seconds = _positive_int(reset_after)
        if seconds is not None:
            return seconds * 1000

    reset_ts = _header(headers, "x-ratelimit-reset")
    if reset_ts:
        try:
            ts = int(reset_ts.strip())
        except ValueError:
            return None
        diff = int((ts - now) * 1000)
        return diff if diff > 0 else None

    return None


def extract_error_message(body_text: Any) -> Optional[str]:
    """
    Best-effort extraction of `error.message` / `message` from a JSON error body.

    Malformed bodies yield None.
    """
    if isinstance(body_text, (bytes, bytearray)):
        body_text = body_text.decode("utf-8", errors="ignore")
    if not isinstance(body_text, str) or not body_text:
        return None
    try:
        data = json.loads(body_text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(data.get("message"), str):
        return data["message"]
    if isinstance(error, str):
        return error
    return None
