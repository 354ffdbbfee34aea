"""Voting endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_client_ip, get_optional_user, get_voter_cookie
from superoptimised.models.user import User
from superoptimised.schemas.engagement import EngagementResponse
from superoptimised.schemas.vote import (
    RateLimitStatusResponse,
    VoteHistory,
    VoteResult,
    VoteStats,
    VoteSubmission,
)
from superoptimised.services import (
    EngagementService,
    Identity,
    RateLimitService,
    ResponseService,
    UserIdentity,
    VoterIdentity,
    VoterTokenService,
)
from superoptimised.utils.cookies import set_voter_token_cookie
from superoptimised.utils.exceptions import InvalidVoterTokenError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/votes", tags=["votes"])

VOTE_ACTION = "vote"


async def _existing_identity(request: Request, user: Optional[User], db: AsyncSession) -> Optional[Identity]:
    """The caller's identity if one is already known; never issues a voter token."""
    if user is not None:
        return UserIdentity(user.user_id)
    try:
        token = await VoterTokenService(db).resolve_existing(get_voter_cookie(request))
    except InvalidVoterTokenError:
        return None
    return VoterIdentity(token.voter_token_id)


@router.post("", response_model=VoteResult)
async def submit_vote(
    submission: VoteSubmission,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Record one vote.

    Order: refuse early when the IP has no quota left, validate, then count
    the request and issue the voter token only for a vote that will be
    stored. The token goes back as a cookie.
    """
    client_ip = get_client_ip(request)
    rate_limits = RateLimitService(db)
    await rate_limits.ensure_available(client_ip, VOTE_ACTION)

    cookie_token = get_voter_cookie(request)
    identity = await _existing_identity(request, user, db)
    issued = {}

    async def claim_vote_slot() -> Optional[Identity]:
        await rate_limits.consume(client_ip, VOTE_ACTION)
        if user is not None:
            return None
        issued["token"], voter_token = await VoterTokenService(db).get_or_create(cookie_token, client_ip)
        return VoterIdentity(voter_token.voter_token_id)

    record = await ResponseService(db).submit(
        submission.question_id,
        identity,
        submission.response,
        ip_address=client_ip,
        questionnaire_id=submission.questionnaire_id,
        before_insert=claim_vote_slot,
    )

    if "token" in issued:
        set_voter_token_cookie(response, issued["token"])

    message = (f"Vote recorded! You earned {record.xp_earned} XP"
               if record.xp_earned else "Vote recorded!")
    return VoteResult(
        success=True,
        vote_id=record.response.response_id,
        xp_earned=record.xp_earned,
        total_xp=record.total_xp,
        vote_number=record.vote_number,
        message=message,
    )


@router.get("/stats/{question_id}", response_model=VoteStats)
async def vote_stats(question_id: UUID, db: AsyncSession = Depends(get_db)):
    return await ResponseService(db).vote_stats(question_id)


@router.get("/history", response_model=VoteHistory)
async def vote_history(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """The caller's latest votes and XP total."""
    identity = await _existing_identity(request, user, db)
    return await ResponseService(db).history(identity)


@router.get("/engagement", response_model=EngagementResponse)
async def engagement(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    identity = await _existing_identity(request, user, db)
    return await EngagementService(db).get_engagement(identity)


@router.get("/rate-limit", response_model=RateLimitStatusResponse)
async def rate_limit_status(request: Request, db: AsyncSession = Depends(get_db)):
    status = await RateLimitService(db).check_limit(get_client_ip(request), VOTE_ACTION)
    return RateLimitStatusResponse(
        remaining=status.remaining,
        reset_time=status.reset_time,
        limit=status.limit,
    )
