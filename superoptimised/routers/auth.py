"""Authentication endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_current_user
from superoptimised.models.user import User
from superoptimised.schemas.auth import AuthTokenResponse, LoginRequest, RegisterRequest, UserInfo
from superoptimised.services import AuthError, AuthService
from superoptimised.utils.cookies import clear_access_token_cookie, set_access_token_cookie

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_info(auth_service: AuthService, user: User) -> UserInfo:
    return UserInfo(
        user_id=user.user_id,
        email=user.email,
        display_name=user.display_name,
        is_admin=auth_service.is_admin(user),
        created_at=user.created_at,
        last_login_date=user.last_login_date,
    )


def _complete_login(auth_service: AuthService, user: User, response: Response) -> AuthTokenResponse:
    """Issue the access token and set it as a cookie."""
    access_token, expires_in = auth_service.create_access_token(user)
    set_access_token_cookie(response, access_token)
    return AuthTokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user=_user_info(auth_service, user),
    )


@router.post("/register", response_model=AuthTokenResponse, status_code=201)
async def register(
    request: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthTokenResponse:
    """Create an account and log it in."""
    auth_service = AuthService(db)
    try:
        user = await auth_service.register_user(request.email, request.password, request.display_name)
    except AuthError as exc:
        status_code = 409 if str(exc) == "email_taken" else 400
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc

    return _complete_login(auth_service, user, response)


@router.post("/login", response_model=AuthTokenResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthTokenResponse:
    """Authenticate via email/password and issue a JWT."""
    auth_service = AuthService(db)
    try:
        user = await auth_service.authenticate_user(request.email, request.password)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    return _complete_login(auth_service, user, response)


@router.post("/logout", status_code=204)
async def logout(response: Response) -> None:
    """Clear the access token cookie."""
    clear_access_token_cookie(response)
    response.status_code = 204
    return None


@router.get("/me", response_model=UserInfo)
async def me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserInfo:
    return _user_info(AuthService(db), user)
