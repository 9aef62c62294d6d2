# app/api/dependencies/internal_auth.py
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import get_settings


async def verify_internal_api_key(
    internal_api_key: Optional[str] = Header(
        default=None,
        alias="X-Internal-Api-Key",
        description="Internal API key required for /internal endpoints in non-local environments.",
    ),
) -> None:
    """
    Dependency protecting the /internal maintenance endpoints (waitlist
    sweep, reminder scan) that schedulers and cron jobs call.

    Rules
    -----
    - APP_ENV in ("local", "test"):
        - INTERNAL_API_KEY unset -> endpoints open.
        - INTERNAL_API_KEY set   -> header must match.
    - Any other APP_ENV:
        - INTERNAL_API_KEY unset -> 500 (misconfiguration).
        - Header missing or wrong -> 401.
    """
    settings = get_settings()
    env = (settings.APP_ENV or "local").lower()
    expected = getattr(settings, "INTERNAL_API_KEY", None)

    if not expected:
        if env in ("local", "test"):
            return
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_KEY not configured for this environment.",
        )

    if not internal_api_key or not secrets.compare_digest(internal_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal API key.",
        )
