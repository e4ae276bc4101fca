"""
Account Fallback Tests
"""

from datetime import datetime, timedelta, timezone

import pytest

from sse_gateway.config import get_settings
from sse_gateway.domain.account import Account
from sse_gateway.services.account_fallback import (
    ErrorKind,
    apply_error_state,
    check_fallback_error,
    filter_available_accounts,
    get_quota_cooldown,
    is_account_unavailable,
    reset_account_state,
)

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestGetQuotaCooldown:
    def test_escalation(self):
        assert get_quota_cooldown(0) == 1_000
        assert get_quota_cooldown(1) == 2_000
        assert get_quota_cooldown(3) == 8_000

    def test_capped_at_max(self):
        assert get_quota_cooldown(20) == get_settings().BACKOFF_MAX_MS

    def test_settings_override(self, monkeypatch):
        monkeypatch.setenv("BACKOFF_BASE_MS", "500")
        get_settings.cache_clear()
        assert get_quota_cooldown(2) == 2_000


class TestCheckFallbackError:
    @pytest.mark.parametrize(
        "status, kind, cooldown",
        [
            (401, ErrorKind.AUTH_FAILURE, 120_000),
            (402, ErrorKind.QUOTA_OR_PERMISSION, 120_000),
            (403, ErrorKind.QUOTA_OR_PERMISSION, 120_000),
            (404, ErrorKind.NOT_FOUND, 3_600_000),
            (500, ErrorKind.TRANSIENT_UPSTREAM, 30_000),
            (503, ErrorKind.TRANSIENT_UPSTREAM, 30_000),
        ],
    )
    def test_status_table(self, status, kind, cooldown):
        decision = check_fallback_error(status)
        assert decision.should_fallback is True
        assert decision.kind == kind
        assert decision.cooldown_ms == cooldown
        assert decision.new_backoff_level is None

    def test_bad_request_does_not_fallback(self):
        decision = check_fallback_error(400, "invalid argument")
        assert decision.should_fallback is False
        assert decision.cooldown_ms == 0
        assert decision.kind == ErrorKind.HARD_CLIENT_ERROR

    def test_429_escalates_backoff(self):
        decision = check_fallback_error(429, None, backoff_level=2)
        assert decision.kind == ErrorKind.RATE_LIMITED
        assert decision.cooldown_ms == 4_000
        assert decision.new_backoff_level == 3

    def test_backoff_level_capped(self):
        decision = check_fallback_error(429, None, backoff_level=15)
        assert decision.new_backoff_level == 15
        assert decision.cooldown_ms == get_settings().BACKOFF_MAX_MS

    def test_rate_limit_text_beats_status(self):
        decision = check_fallback_error(400, "Resource has been exhausted: Quota Exceeded")
        assert decision.should_fallback is True
        assert decision.kind == ErrorKind.RATE_LIMITED

    def test_request_not_allowed_text(self):
        decision = check_fallback_error(403, "Request not allowed for this account")
        assert decision.kind == ErrorKind.REQUEST_NOT_ALLOWED
        assert decision.cooldown_ms == 5_000


class TestAccountState:
    def setup_method(self):
        self.account = Account(id="a1", provider="antigravity")

    def test_apply_error_state_rate_limit(self):
        updated = apply_error_state(self.account, 429, "Too Many Requests", now=NOW)
        assert updated.backoff_level == 1
        assert updated.rate_limited_until == NOW + timedelta(milliseconds=1_000)
        assert updated.status == "error"
        assert updated.last_error.status == 429
        assert updated.last_error.message == "Too Many Requests"
        # original record untouched
        assert self.account.backoff_level == 0
        assert self.account.rate_limited_until is None

    def test_apply_error_state_keeps_level_for_non_rate_limit(self):
        account = self.account.model_copy(update={"backoff_level": 3})
        updated = apply_error_state(account, 503, None, now=NOW)
        assert updated.backoff_level == 3
        assert updated.rate_limited_until == NOW + timedelta(seconds=30)

    def test_apply_error_state_hard_error_sets_no_cooldown(self):
        updated = apply_error_state(self.account, 400, "bad", now=NOW)
        assert updated.rate_limited_until is None
        assert updated.last_error.status == 400

    def test_reset_after_error(self):
        errored = apply_error_state(self.account, 429, None, now=NOW)
        reset = reset_account_state(errored)
        assert reset.rate_limited_until is None
        assert reset.backoff_level == 0
        assert reset.last_error is None
        assert reset.status == "active"

    def test_none_passthrough(self):
        assert reset_account_state(None) is None
        assert apply_error_state(None, 500, None) is None


class TestAvailability:
    def test_is_account_unavailable(self):
        assert is_account_unavailable(None, NOW) is False
        assert is_account_unavailable(NOW + timedelta(seconds=1), NOW) is True
        assert is_account_unavailable(NOW - timedelta(seconds=1), NOW) is False

    def test_naive_timestamps_are_utc(self):
        naive = (NOW + timedelta(seconds=5)).replace(tzinfo=None)
        assert is_account_unavailable(naive, NOW) is True

    def test_filter_available_accounts(self):
        accounts = [
            Account(id="a", provider="p"),
            Account(id="b", provider="p", rate_limited_until=NOW + timedelta(minutes=1)),
            Account(id="c", provider="p", rate_limited_until=NOW - timedelta(minutes=1)),
        ]
        available = filter_available_accounts(accounts, now=NOW)
        assert [a.id for a in available] == ["a", "c"]
        assert [a.id for a in filter_available_accounts(accounts, exclude_id="a", now=NOW)] == ["c"]
