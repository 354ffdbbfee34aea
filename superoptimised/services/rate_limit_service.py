"""Database-backed per-IP, per-action rate limiting."""
import ipaddress
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Optional

from sqlalchemy import case, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.config import Settings, get_settings
from superoptimised.models.rate_limit import RateLimit
from superoptimised.utils.datetime_helpers import ensure_utc, seconds_until
from superoptimised.utils.exceptions import RateLimitExceededError
from superoptimised.utils.log_sanitizer import log_internal_error
from superoptimised.utils.upsert import dialect_insert

logger = logging.getLogger(__name__)

# INET6_ADDRSTRLEN
MAX_IP_LENGTH = 45
UNKNOWN_IP = "unknown"


def normalize_ip(raw: Optional[str]) -> str:
    """Canonical form of a client IP, or ``"unknown"`` when it cannot be parsed.

    IPv6 addresses are compressed and IPv4-mapped IPv6 addresses collapse to
    their IPv4 form so both spellings share one counter. Never raises.
    """
    if not raw or not isinstance(raw, str):
        return UNKNOWN_IP

    candidate = raw.strip()[:MAX_IP_LENGTH]
    if candidate.startswith("[") and candidate.endswith("]"):
        candidate = candidate[1:-1]

    try:
        address = ipaddress.ip_address(candidate)
    except ValueError:
        return UNKNOWN_IP

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return address.compressed


@dataclass(frozen=True)
class RateLimitStatus:
    remaining: int
    reset_time: datetime
    limit: int

    @property
    def retry_after(self) -> int:
        return seconds_until(self.reset_time)


class RateLimitService:
    """Fixed-window counters stored in the ``rate_limits`` table."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.settings.rate_limit_window_seconds)

    async def check_limit(self, ip_address: Optional[str], action_type: str) -> RateLimitStatus:
        """Remaining quota for ``(ip_address, action_type)`` in the current window.

        A missing or expired row means a fresh window. Any database failure
        yields ``remaining=0`` so requests are denied rather than let through.
        """
        ip = normalize_ip(ip_address)
        limit = self.settings.rate_limit_for(action_type)
        now = datetime.now(UTC)

        try:
            result = await self.db.execute(
                select(RateLimit.request_count, RateLimit.expires_at).where(
                    RateLimit.ip_address == ip,
                    RateLimit.action_type == action_type,
                )
            )
            row = result.one_or_none()
        except Exception as exc:
            log_internal_error(logger, "Rate limit check failed, denying request", exc,
                               ip_address=ip, action_type=action_type)
            await self._safe_rollback()
            return RateLimitStatus(remaining=0, reset_time=now + self.window, limit=limit)

        if row is None:
            return RateLimitStatus(remaining=limit, reset_time=now + self.window, limit=limit)

        request_count, expires_at = row
        expires_at = ensure_utc(expires_at)
        if expires_at <= now:
            return RateLimitStatus(remaining=limit, reset_time=now + self.window, limit=limit)

        return RateLimitStatus(
            remaining=max(0, limit - request_count),
            reset_time=expires_at,
            limit=limit,
        )

    def _counting_upsert(self, ip: str, action_type: str, now: datetime):
        """INSERT .. ON CONFLICT that counts one request for ``(ip, action_type)``.

        A new key starts a window at 1. An existing live row gets ``+1``; an
        expired row that the sweep has not removed yet restarts at 1.
        """
        stmt = dialect_insert(self.db, RateLimit).values(
            ip_address=ip,
            action_type=action_type,
            request_count=1,
            window_start=now,
            expires_at=now + self.window,
        )
        expired = RateLimit.expires_at <= now
        set_ = {
            "request_count": case((expired, 1), else_=RateLimit.request_count + 1),
            "window_start": case((expired, stmt.excluded.window_start), else_=RateLimit.window_start),
            "expires_at": case((expired, stmt.excluded.expires_at), else_=RateLimit.expires_at),
        }
        return stmt, expired, set_

    async def increment(self, ip_address: Optional[str], action_type: str) -> None:
        """Count one request unconditionally with a single atomic upsert."""
        stmt, _, set_ = self._counting_upsert(normalize_ip(ip_address), action_type, datetime.now(UTC))
        await self.db.execute(stmt.on_conflict_do_update(index_elements=["ip_address", "action_type"], set_=set_))
        await self.db.commit()

    async def ensure_available(self, ip_address: Optional[str], action_type: str) -> RateLimitStatus:
        """Raise ``RateLimitExceededError`` when no quota is left. Counts nothing."""
        status = await self.check_limit(ip_address, action_type)
        if status.remaining <= 0:
            logger.info(f"Rate limit hit for {normalize_ip(ip_address)} on {action_type}")
            raise RateLimitExceededError(action_type, retry_after=status.retry_after)
        return status

    async def consume(self, ip_address: Optional[str], action_type: str) -> RateLimitStatus:
        """Take one slot from the quota, or raise ``RateLimitExceededError``.

        The limit is checked inside the upsert itself: the conflict update only
        fires while the row is expired or below the limit, so concurrent
        requests can never push ``request_count`` past it. No returned row
        means the quota was already used up.
        """
        ip = normalize_ip(ip_address)
        limit = self.settings.rate_limit_for(action_type)
        now = datetime.now(UTC)

        stmt, expired, set_ = self._counting_upsert(ip, action_type, now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["ip_address", "action_type"],
            set_=set_,
            where=or_(expired, RateLimit.request_count < limit),
        ).returning(RateLimit.request_count, RateLimit.expires_at)

        result = await self.db.execute(stmt)
        row = result.one_or_none()
        await self.db.commit()

        if row is None or row.request_count > limit:
            status = await self.check_limit(ip, action_type)
            logger.info(f"Rate limit hit for {ip} on {action_type}")
            raise RateLimitExceededError(action_type, retry_after=status.retry_after)

        return RateLimitStatus(
            remaining=max(0, limit - row.request_count),
            reset_time=ensure_utc(row.expires_at),
            limit=limit,
        )

    async def enforce(self, ip_address: Optional[str], action_type: str) -> RateLimitStatus:
        """Reject the request when the quota is exhausted, otherwise count it.

        The up-front check also fails closed when the store is unreachable.
        """
        await self.ensure_available(ip_address, action_type)
        return await self.consume(ip_address, action_type)

    async def cleanup_expired(self) -> int:
        """Delete expired rows one by one. Returns how many were removed.

        A row that fails to delete is logged and skipped.
        """
        now = datetime.now(UTC)
        result = await self.db.execute(select(RateLimit.id).where(RateLimit.expires_at <= now))
        expired_ids = list(result.scalars().all())
        await self.db.commit()

        deleted = 0
        for rate_limit_id in expired_ids:
            try:
                delete_result = await self.db.execute(
                    delete(RateLimit)
                    .where(RateLimit.id == rate_limit_id, RateLimit.expires_at <= now)
                    .execution_options(synchronize_session=False)
                )
                await self.db.commit()
                deleted += delete_result.rowcount or 0
            except Exception as exc:
                log_internal_error(logger, "Failed to delete expired rate limit row", exc,
                                   rate_limit_id=rate_limit_id)
                await self._safe_rollback()

        if expired_ids:
            logger.info(f"Rate limit cleanup removed {deleted} of {len(expired_ids)} expired rows")
        return deleted

    async def _safe_rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as exc:
            logger.warning(f"Rollback after rate limit failure also failed: {exc}")
