"""Error taxonomy for the assistant proxy.

Every error carries the HTTP status and a user-safe message; the API layer
renders them as ``{"error": message}`` so upstream details never leak.
"""
from __future__ import annotations

from fastapi import status


class AssistantProxyError(RuntimeError):
    """Base class for failures surfaced to assistant callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationRequired(AssistantProxyError):
    """Missing, malformed or rejected bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED


class RateLimited(AssistantProxyError):
    """The caller or the upstream gateway throttled the request."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class UpstreamUnavailable(AssistantProxyError):
    """The AI gateway could not produce a response."""


__all__ = [
    "AssistantProxyError",
    "AuthenticationRequired",
    "RateLimited",
    "UpstreamUnavailable",
]
