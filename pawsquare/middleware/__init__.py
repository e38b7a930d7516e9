"""Middleware exports."""
from __future__ import annotations

from .origin_policy import OriginPolicyMiddleware

__all__ = ["OriginPolicyMiddleware"]
