"""Token authentication for farmer accounts.

Accounts live in an external identity provider which signs RS256 tokens.
This service only verifies them. A token is looked for in three places, in
order, and the first one that verifies wins:

  1. ``Authorization: Bearer <access token>`` (mobile and API clients)
  2. the access-token cookie (web app)
  3. the refresh-token cookie, so a user whose access token just expired is
     not bounced mid-session

Claims read from the token:

  ============  ==========================================
  ``userId``    owner of diagnosis records
  ``sub``       display username
  ``email``     present on access tokens only
  ``tokenType`` ``ACCESS`` or ``REFRESH``
  ============  ==========================================
"""

import logging
from typing import Any, Callable, Dict, NamedTuple, Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config.settings import settings

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/", "/health", "/openapi.json"})
PUBLIC_PREFIXES = ("/docs", "/redoc")

# Identity used for every request while auth_enabled is off
LOCAL_USER: Dict[str, Any] = {
    "user_id": "local-user",
    "username": "local",
    "email": "",
    "token_type": "LOCAL",
}


class TokenSource(NamedTuple):
    """Where to find a token and which kind it must be."""

    name: str
    token_type: str
    read: Callable[[Request], Optional[str]]


def _bearer_token(request: Request) -> Optional[str]:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


TOKEN_SOURCES = (
    TokenSource("authorization_header", "ACCESS", _bearer_token),
    TokenSource(
        "access_cookie",
        "ACCESS",
        lambda request: request.cookies.get(settings.jwt_access_cookie_name),
    ),
    TokenSource(
        "refresh_token",
        "REFRESH",
        lambda request: request.cookies.get(settings.jwt_refresh_cookie_name),
    ),
)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def load_public_key() -> Optional[str]:
    """Return the provider's PEM public key, or None if it can't be read."""
    path = settings.jwt_public_key_path
    try:
        with open(path, "r") as fh:
            pem = fh.read().strip()
    except OSError as exc:
        logger.warning("Cannot read JWT public key at %s: %s", path, exc)
        return None

    logger.info("Loaded JWT public key from %s", path)
    return pem


def verify_token(token: str, public_key: str, token_type: str) -> Optional[Dict[str, Any]]:
    """
    Check signature, issuer, expiry and token type.

    Returns the claims, or None when any check fails.
    """
    try:
        claims = jwt.decode(
            token,
            public_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        logger.debug("Rejected expired %s token", token_type)
        return None
    except InvalidTokenError as exc:
        logger.debug("Rejected %s token: %s", token_type, exc)
        return None

    if claims.get("tokenType") != token_type:
        logger.debug("Expected %s token, got %s", token_type, claims.get("tokenType"))
        return None
    return claims


def claims_to_user(claims: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": claims.get("userId", ""),
        "username": claims.get("sub", ""),
        "email": claims.get("email", ""),
        "token_type": claims.get("tokenType", ""),
    }


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "error": error})


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Attach the verified user to ``request.state.user`` or reject with 401.

    Public paths and CORS preflights pass through untouched. With
    ``auth_enabled`` off every request runs as ``LOCAL_USER``. If the public
    key cannot be loaded protected routes answer 503 until it can.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._public_key: Optional[str] = load_public_key() if settings.auth_enabled else None

    def _key(self) -> Optional[str]:
        # Retried per request so a key mounted after startup is picked up
        if self._public_key is None:
            self._public_key = load_public_key()
        return self._public_key

    def _authenticate(self, request: Request, public_key: str) -> Optional[Dict[str, Any]]:
        for source in TOKEN_SOURCES:
            token = source.read(request)
            if not token:
                continue
            claims = verify_token(token, public_key, source.token_type)
            if claims is None:
                continue

            user = claims_to_user(claims)
            if source.token_type == "REFRESH":
                user["authenticated_via"] = source.name
            logger.debug("Authenticated user %s via %s", user["user_id"], source.name)
            return user
        return None

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)

        if not settings.auth_enabled:
            request.state.user = dict(LOCAL_USER)
            return await call_next(request)

        public_key = self._key()
        if public_key is None:
            logger.error("No JWT public key; refusing %s", request.url.path)
            return _error(
                503,
                "SERVICE_UNAVAILABLE",
                "Authentication is not configured on this server.",
            )

        user = self._authenticate(request, public_key)
        if user is None:
            logger.warning("Unauthenticated request: %s %s", request.method, request.url.path)
            return _error(
                401,
                "UNAUTHORIZED",
                "Sign in again: no valid access or refresh token was sent.",
            )

        request.state.user = user
        return await call_next(request)
