"""FastAPI dependencies for authentication and storage access.

The JWTAuthMiddleware (registered in main.py) verifies the identity
provider's token and stores a normalised user dict in `request.state.user`.

User dict shape:
    {
        "user_id":    str,
        "username":   str,
        "email":      str,
        "token_type": str,   # "ACCESS" | "REFRESH" | "LOCAL"
    }
"""

from typing import Dict, Any

from fastapi import HTTPException, Request, status
import logging

from app.config.settings import settings
from app.services.diagnosis_store import DiagnosisStore, get_diagnosis_store
from app.services.history_analyzer import resolve_timezone

logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Return the authenticated user attached by JWTAuthMiddleware.

    Raises:
        HTTP 401 – if the middleware did not populate request.state.user
    """
    user: Dict[str, Any] | None = getattr(request.state, "user", None)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Provide a valid access_token cookie.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User identity missing from token.",
        )

    logger.debug(
        "Authenticated user: %s (%s)",
        user.get("username"),
        user.get("user_id"),
    )
    return user


def get_store() -> DiagnosisStore:
    """Diagnosis store dependency; override in tests."""
    return get_diagnosis_store()


def get_activity_timezone():
    """Reference timezone for calendar-day bucketing."""
    return resolve_timezone(settings.activity_timezone)
