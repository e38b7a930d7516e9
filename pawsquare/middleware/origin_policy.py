"""Middleware applying the assistant function's per-request CORS policy."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from ..services.assistant_service import UPSTREAM_FAILURE_MESSAGE
from ..services.origin_policy import cors_headers

logger = logging.getLogger(__name__)


class OriginPolicyMiddleware(BaseHTTPMiddleware):
    """Answer preflights and attach CORS headers on the configured path prefixes.

    Unhandled errors on these paths become a 500 ``{"error": ...}`` body that
    still carries the CORS headers.
    """

    def __init__(self, app: ASGIApp, *, paths: Sequence[str]) -> None:
        super().__init__(app)
        self._paths = tuple(paths)

    def _applies_to(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not self._applies_to(path):
            return await call_next(request)

        headers = cors_headers(request.headers.get("Origin"))
        if request.method.upper() == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=headers)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, path)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": UPSTREAM_FAILURE_MESSAGE},
                headers=headers,
            )
        for name, value in headers.items():
            response.headers[name] = value
        return response


__all__ = ["OriginPolicyMiddleware"]
