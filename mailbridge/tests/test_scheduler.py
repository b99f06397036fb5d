"""
Tests for the expired-token sweep scheduler and rate limit settings.
"""

import pytest

from mailbridge.config import config
from mailbridge.database import CredentialFields, now_ms
from mailbridge.rate_limit import get_rate_limit
from mailbridge.scheduler import TokenSweepScheduler


class TestTokenSweepScheduler:
    """Background cleanup of expired credentials."""

    def test_sweep_now_removes_only_expired(self, store):
        now = now_ms()
        store.put("gone", CredentialFields(access_token="a", expiry=now - 1000))
        store.put("kept", CredentialFields(access_token="b", expiry=now + 3600 * 1000))
        scheduler = TokenSweepScheduler(store)

        assert scheduler.sweep_now() == 1
        assert store.get("gone") is None
        assert store.get("kept") is not None

    @pytest.mark.asyncio
    async def test_disabled_interval_does_not_start(self, store):
        scheduler = TokenSweepScheduler(store, interval_minutes=0)

        await scheduler.start()

        assert scheduler.running is False
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store):
        scheduler = TokenSweepScheduler(store, interval_minutes=60)

        await scheduler.start()
        assert scheduler.running is True

        await scheduler.stop()
        assert scheduler.running is False


class TestRateLimitSettings:
    """Limit string derived from config."""

    def test_configured_limit(self, monkeypatch):
        monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 30)
        assert get_rate_limit() == "30/minute"

    def test_disabled_limit(self, monkeypatch):
        monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 0)
        assert get_rate_limit() == "1000000/minute"
