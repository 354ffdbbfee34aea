"""FastAPI dependencies."""
import logging
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.config import get_settings
from superoptimised.database import get_db
from superoptimised.models.user import User
from superoptimised.services.auth_service import AuthError, AuthService
from superoptimised.services.rate_limit_service import normalize_ip

logger = logging.getLogger(__name__)

settings = get_settings()


def get_client_ip(request: Request) -> str:
    """Client IP in canonical form, honouring proxy headers.

    X-Forwarded-For can be a comma-separated list; the first entry is the client.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return normalize_ip(forwarded_for.split(",")[0])

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return normalize_ip(real_ip)

    return normalize_ip(request.client.host if request.client else None)


def get_voter_cookie(request: Request) -> str | None:
    return request.cookies.get(settings.voter_token_cookie_name)


async def get_current_user(
        request: Request,
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the current authenticated user via JWT access token.

    Checks for access token in the following order:
    1. HTTP-only cookie (preferred, secure)
    2. Authorization header (API clients)
    """
    token = request.cookies.get(settings.access_token_cookie_name)
    token_source = "cookie"

    if not token and authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail="invalid_authorization_header")
        token_source = "header"

    if not token:
        raise HTTPException(status_code=401, detail="missing_credentials")

    auth_service = AuthService(db)
    try:
        payload = auth_service.decode_access_token(token)
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise AuthError("invalid_token")
        user_id = UUID(str(user_id_str))
    except (ValueError, AuthError) as exc:
        detail = "token_expired" if isinstance(exc, AuthError) and str(exc) == "token_expired" else "invalid_token"
        raise HTTPException(status_code=401, detail=detail) from exc

    user = await auth_service.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="invalid_token")

    logger.debug(f"Authenticated user via JWT {token_source}: {user.user_id}")
    return user


async def get_optional_user(
        request: Request,
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> User | None:
    """Return the current user if available, otherwise None for auth failures."""
    try:
        return await get_current_user(request, authorization, db)
    except HTTPException as exc:
        if exc.status_code == 401:
            return None
        raise


async def get_admin_user(
    user: User = Depends(get_current_user),
) -> User:
    """Verify that the current authenticated user is an admin.

    Only users whose email appears in the ``admin_emails`` configuration can
    access admin endpoints.

    Raises:
        HTTPException: 403 if the user is not an admin
    """
    if not settings.is_admin_email(user.email):
        logger.warning(f"Access denied to admin endpoint for non-admin user: {user.user_id}")
        raise HTTPException(
            status_code=403,
            detail="admin_access_required"
        )

    logger.debug(f"Admin access granted to: {user.user_id}")
    return user
