"""HTTP cookie helpers."""
from fastapi import Response

from superoptimised.config import get_settings


def _set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    settings = get_settings()
    # Secure flag: only disabled for local development and tests
    secure_value = settings.environment not in ("development", "test")

    response.set_cookie(
        key=name,
        value=value,
        httponly=True,
        secure=secure_value,
        samesite="lax",
        max_age=max_age,
        expires=max_age,
        path="/",
    )


def set_access_token_cookie(response: Response, token: str) -> None:
    """Set the access token cookie with secure defaults."""
    settings = get_settings()
    _set_cookie(response, settings.access_token_cookie_name, token, settings.access_token_exp_minutes * 60)


def set_voter_token_cookie(response: Response, raw_token: str) -> None:
    """Persist the anonymous voter token on the client.

    Only the raw token travels in the cookie; the database keeps its hash.
    """
    settings = get_settings()
    max_age = settings.voter_token_max_age_days * 24 * 60 * 60
    _set_cookie(response, settings.voter_token_cookie_name, raw_token, max_age)


def clear_access_token_cookie(response: Response) -> None:
    """Remove the access token cookie from the client."""

    settings = get_settings()
    response.delete_cookie(
        key=settings.access_token_cookie_name,
        path="/",
    )
