"""Per-request CORS origin resolution for the assistant function."""
from __future__ import annotations

import re
from typing import Final

from ..config import Settings, get_settings

_STATIC_ORIGINS: Final[tuple[str, ...]] = (
    "https://lovable.dev",
    "https://www.lovable.dev",
)
_TRUSTED_SUFFIXES: Final[tuple[str, ...]] = (".lovable.app", ".lovable.dev")
_PROJECT_REF_PATTERN = re.compile(r"https://([^.]+)\.supabase\.co")

ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
ALLOW_METHODS = "POST, OPTIONS"


def allowed_origins(settings: Settings | None = None) -> list[str]:
    """Return the explicit allow-list; the first entry is the fallback origin."""

    settings = settings or get_settings()
    origins = list(_STATIC_ORIGINS)

    match = _PROJECT_REF_PATTERN.match(settings.backend_url or "")
    if match:
        project_ref = match.group(1)
        origins.append(f"https://{project_ref}.lovable.app")
        origins.append(f"https://{project_ref}.supabase.co")

    if settings.allowed_origin:
        origins.append(settings.allowed_origin.strip())

    return origins


def is_origin_allowed(origin: str | None, settings: Settings | None = None) -> bool:
    if not origin:
        return False
    if origin in allowed_origins(settings):
        return True
    return origin.endswith(_TRUSTED_SUFFIXES)


def cors_headers(origin: str | None, settings: Settings | None = None) -> dict[str, str]:
    """Build the CORS headers for a request carrying ``origin``.

    Unknown origins get the first static origin back, never a wildcard.
    """

    origins = allowed_origins(settings)
    allow_origin = origin if origin and is_origin_allowed(origin, settings) else origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
        "Vary": "Origin",
    }


__all__ = ["ALLOW_HEADERS", "ALLOW_METHODS", "allowed_origins", "cors_headers", "is_origin_allowed"]
