"""Tests for the database-backed rate limiter."""
import asyncio
from datetime import datetime, timedelta, UTC

import pytest
from sqlalchemy import select
from sqlalchemy.sql.dml import Delete

from superoptimised.config import Settings
from superoptimised.models.rate_limit import RateLimit
from superoptimised.services.rate_limit_service import RateLimitService, normalize_ip
from superoptimised.utils.exceptions import RateLimitExceededError


@pytest.fixture
def small_quota():
    return Settings(rate_limit_action_max={"vote": 3, "newsletter": 1}, rate_limit_window_seconds=3600)


async def _row(db_session, ip: str, action_type: str) -> RateLimit | None:
    result = await db_session.execute(
        select(RateLimit)
        .where(RateLimit.ip_address == ip, RateLimit.action_type == action_type)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class TestNormalizeIp:

    @pytest.mark.parametrize("raw, expected", [
        ("192.168.1.10", "192.168.1.10"),
        ("  10.0.0.1  ", "10.0.0.1"),
        ("2001:0db8:0000:0000:0000:0000:0000:0001", "2001:db8::1"),
        ("[::1]", "::1"),
        ("::ffff:192.0.2.5", "192.0.2.5"),
        ("", "unknown"),
        (None, "unknown"),
        ("not-an-ip", "unknown"),
        ("1" * 500, "unknown"),
    ])
    def test_normalization(self, raw, expected):
        assert normalize_ip(raw) == expected


class TestCheckAndIncrement:

    @pytest.mark.asyncio
    async def test_unknown_key_has_full_quota(self, db_session, small_quota):
        status = await RateLimitService(db_session, small_quota).check_limit("10.0.0.1", "vote")

        assert status.remaining == 3
        assert status.limit == 3
        assert status.reset_time > datetime.now(UTC)

    @pytest.mark.asyncio
    async def test_increment_counts_down_quota(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)

        await service.increment("10.0.0.1", "vote")
        await service.increment("10.0.0.1", "vote")

        status = await service.check_limit("10.0.0.1", "vote")
        assert status.remaining == 1
        row = await _row(db_session, "10.0.0.1", "vote")
        assert row.request_count == 2

    @pytest.mark.asyncio
    async def test_actions_and_ips_are_counted_separately(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)

        await service.increment("10.0.0.1", "vote")
        await service.increment("10.0.0.2", "vote")
        await service.increment("10.0.0.1", "newsletter")

        assert (await service.check_limit("10.0.0.1", "vote")).remaining == 2
        assert (await service.check_limit("10.0.0.2", "vote")).remaining == 2
        assert (await service.check_limit("10.0.0.1", "newsletter")).remaining == 0

    @pytest.mark.asyncio
    async def test_ipv4_mapped_address_shares_counter(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)

        await service.increment("::ffff:10.0.0.9", "vote")

        assert (await service.check_limit("10.0.0.9", "vote")).remaining == 2

    @pytest.mark.asyncio
    async def test_expired_window_restarts(self, db_session, small_quota):
        """An expired row reports full quota and the next increment restarts at 1."""
        now = datetime.now(UTC)
        db_session.add(RateLimit(
            ip_address="10.0.0.1",
            action_type="vote",
            request_count=50,
            window_start=now - timedelta(hours=3),
            expires_at=now - timedelta(hours=2),
        ))
        await db_session.commit()
        service = RateLimitService(db_session, small_quota)

        status = await service.check_limit("10.0.0.1", "vote")
        assert status.remaining == 3

        await service.increment("10.0.0.1", "vote")

        row = await _row(db_session, "10.0.0.1", "vote")
        assert row.request_count == 1
        assert row.expires_at.replace(tzinfo=UTC) > now

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, session_factory, small_quota):
        """Parallel requests from one IP each land exactly once."""

        async def hit():
            async with session_factory() as session:
                await RateLimitService(session, small_quota).increment("10.0.0.7", "vote")

        await asyncio.gather(*(hit() for _ in range(10)))

        async with session_factory() as session:
            row = await _row(session, "10.0.0.7", "vote")
        assert row.request_count == 10

    @pytest.mark.asyncio
    async def test_store_failure_fails_closed(self, db_session, small_quota, monkeypatch):
        service = RateLimitService(db_session, small_quota)

        async def broken_execute(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(db_session, "execute", broken_execute)

        status = await service.check_limit("10.0.0.1", "vote")
        assert status.remaining == 0


class TestEnforce:

    @pytest.mark.asyncio
    async def test_allows_quota_then_rejects(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)

        remaining = [(await service.enforce("10.0.0.1", "vote")).remaining for _ in range(3)]
        assert remaining == [2, 1, 0]

        with pytest.raises(RateLimitExceededError) as exc_info:
            await service.enforce("10.0.0.1", "vote")

        assert exc_info.value.status_code == 429
        assert 0 < exc_info.value.retry_after <= 3600

    @pytest.mark.asyncio
    async def test_rejected_request_is_not_counted(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)
        for _ in range(3):
            await service.enforce("10.0.0.1", "vote")

        with pytest.raises(RateLimitExceededError):
            await service.enforce("10.0.0.1", "vote")

        row = await _row(db_session, "10.0.0.1", "vote")
        assert row.request_count == 3

    @pytest.mark.asyncio
    async def test_unlisted_action_uses_default_quota(self, db_session):
        settings = Settings(rate_limit_default_max=2, rate_limit_action_max={})
        service = RateLimitService(db_session, settings)

        await service.enforce("10.0.0.1", "contact")
        await service.enforce("10.0.0.1", "contact")
        with pytest.raises(RateLimitExceededError):
            await service.enforce("10.0.0.1", "contact")


class TestConsume:

    @pytest.mark.asyncio
    async def test_counts_down_to_zero_then_rejects(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)

        remaining = [(await service.consume("10.0.0.1", "vote")).remaining for _ in range(3)]
        assert remaining == [2, 1, 0]

        with pytest.raises(RateLimitExceededError) as exc_info:
            await service.consume("10.0.0.1", "vote")

        assert 0 < exc_info.value.retry_after <= 3600
        row = await _row(db_session, "10.0.0.1", "vote")
        assert row.request_count == 3

    @pytest.mark.asyncio
    async def test_expired_full_window_is_reopened(self, db_session, small_quota):
        now = datetime.now(UTC)
        db_session.add(RateLimit(
            ip_address="10.0.0.1",
            action_type="vote",
            request_count=3,
            window_start=now - timedelta(hours=3),
            expires_at=now - timedelta(hours=2),
        ))
        await db_session.commit()

        status = await RateLimitService(db_session, small_quota).consume("10.0.0.1", "vote")

        assert status.remaining == 2
        row = await _row(db_session, "10.0.0.1", "vote")
        assert row.request_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_cannot_exceed_quota(self, session_factory, small_quota):
        """Ten parallel requests race for three slots; exactly three win."""

        async def hit():
            async with session_factory() as session:
                try:
                    await RateLimitService(session, small_quota).consume("10.0.0.8", "vote")
                except RateLimitExceededError:
                    return False
                return True

        outcomes = await asyncio.gather(*(hit() for _ in range(10)))

        assert outcomes.count(True) == 3
        async with session_factory() as session:
            row = await _row(session, "10.0.0.8", "vote")
        assert row.request_count == 3

    @pytest.mark.asyncio
    async def test_ensure_available_counts_nothing(self, db_session, small_quota):
        service = RateLimitService(db_session, small_quota)

        status = await service.ensure_available("10.0.0.1", "vote")

        assert status.remaining == 3
        assert await _row(db_session, "10.0.0.1", "vote") is None


class TestCleanup:

    async def _seed(self, db_session):
        now = datetime.now(UTC)
        for index in range(3):
            db_session.add(RateLimit(
                ip_address=f"10.0.1.{index}",
                action_type="vote",
                request_count=5,
                window_start=now - timedelta(days=2),
                expires_at=now - timedelta(days=1),
            ))
        db_session.add(RateLimit(
            ip_address="10.0.2.1",
            action_type="vote",
            request_count=1,
            window_start=now,
            expires_at=now + timedelta(hours=1),
        ))
        await db_session.commit()

    @pytest.mark.asyncio
    async def test_deletes_only_expired_rows(self, db_session):
        await self._seed(db_session)

        deleted = await RateLimitService(db_session).cleanup_expired()

        assert deleted == 3
        remaining = (await db_session.execute(select(RateLimit.ip_address))).scalars().all()
        assert remaining == ["10.0.2.1"]

    @pytest.mark.asyncio
    async def test_failing_row_does_not_stop_sweep(self, db_session, monkeypatch):
        await self._seed(db_session)
        original_execute = db_session.execute
        calls = {"delete": 0}

        async def flaky_execute(statement, *args, **kwargs):
            if isinstance(statement, Delete):
                calls["delete"] += 1
                if calls["delete"] == 1:
                    raise RuntimeError("row locked")
            return await original_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", flaky_execute)

        deleted = await RateLimitService(db_session).cleanup_expired()

        assert calls["delete"] == 3
        assert deleted == 2

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, db_session):
        assert await RateLimitService(db_session).cleanup_expired() == 0
