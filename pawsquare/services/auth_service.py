"""Bearer token verification against the backend platform's JWT secret."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config import get_settings
from ..security.secrets import MissingSecretError, require_secret
from .errors import AssistantProxyError, AuthenticationRequired

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)

AUTH_REQUIRED_MESSAGE = "Authentication required. Please sign in to use the AI assistant."
UNAUTHORIZED_MESSAGE = "Unauthorized. Please sign in again."
INVALID_TOKEN_MESSAGE = "Invalid authentication token"
AUTH_NOT_CONFIGURED_MESSAGE = "Authentication is not configured"


def _get_jwt_secret() -> str:
    try:
        return require_secret("BACKEND_JWT_SECRET")
    except MissingSecretError as exc:
        logger.error("BACKEND_JWT_SECRET is not configured")
        raise AssistantProxyError(AUTH_NOT_CONFIGURED_MESSAGE) from exc


def decode_token_claims(token: str) -> dict[str, Any]:
    """Validate ``token`` and return its claim set."""

    settings = get_settings()
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            _get_jwt_secret(),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as exc:
        logger.info("JWT validation failed | error=%s", exc)
        raise AuthenticationRequired(UNAUTHORIZED_MESSAGE) from exc


def decode_access_token(token: str) -> str:
    """Decode and validate a JWT, returning the embedded subject (user ID)."""

    claims = decode_token_claims(token)
    subject = claims.get("sub")
    if not subject or not isinstance(subject, str):
        logger.info("No user ID in token claims")
        raise AuthenticationRequired(INVALID_TOKEN_MESSAGE)
    return subject


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> str:
    """Resolve the caller's user ID from the ``Authorization: Bearer`` header."""

    if not credentials or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        logger.info("Missing or invalid authorization header")
        raise AuthenticationRequired(AUTH_REQUIRED_MESSAGE)
    return decode_access_token(credentials.credentials)


__all__ = [
    "AUTH_NOT_CONFIGURED_MESSAGE",
    "AUTH_REQUIRED_MESSAGE",
    "INVALID_TOKEN_MESSAGE",
    "UNAUTHORIZED_MESSAGE",
    "decode_access_token",
    "decode_token_claims",
    "get_current_user_id",
]
