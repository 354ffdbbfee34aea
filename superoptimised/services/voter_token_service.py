"""Anonymous voter identity resolution."""
import hashlib
import logging
import uuid
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.models.voter_token import VoterToken
from superoptimised.utils.exceptions import InvalidVoterTokenError

logger = logging.getLogger(__name__)


def hash_token(raw_token: str) -> str:
    """sha256 hex digest of a raw voter token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_token() -> str:
    return str(uuid.uuid4())


class VoterTokenService:
    """Issue and look up voter tokens. Only token hashes are persisted."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_by_hash(self, token_hash: str) -> Optional[VoterToken]:
        result = await self.db.execute(select(VoterToken).where(VoterToken.token_hash == token_hash))
        return result.scalar_one_or_none()

    async def get_or_create(
        self, existing_token: Optional[str], ip_address: Optional[str] = None
    ) -> tuple[str, VoterToken]:
        """Reuse the voter token presented by the client or issue a new one.

        Returns:
            ``(raw_token, record)``. The raw token is what goes back into the
            cookie; it equals ``existing_token`` whenever that one was known.
        """
        now = datetime.now(UTC)

        if existing_token:
            record = await self._get_by_hash(hash_token(existing_token))
            if record is not None:
                record.last_active = now
                if ip_address:
                    record.ip_address = ip_address
                await self.db.commit()
                return existing_token, record
            logger.info("Unknown voter token presented, issuing a new one")

        raw_token = generate_token()
        record = VoterToken(
            token_hash=hash_token(raw_token),
            ip_address=ip_address,
            vote_count=0,
            created_at=now,
            last_active=now,
        )
        self.db.add(record)
        await self.db.commit()
        logger.info(f"Issued voter token {record.voter_token_id}")
        return raw_token, record

    async def resolve_existing(self, raw_token: Optional[str]) -> VoterToken:
        """Look up a previously issued token without creating one."""
        if not raw_token:
            raise InvalidVoterTokenError()
        record = await self._get_by_hash(hash_token(raw_token))
        if record is None:
            raise InvalidVoterTokenError()
        return record
