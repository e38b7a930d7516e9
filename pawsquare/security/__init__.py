"""Secret handling helpers."""
from __future__ import annotations

from .secrets import MissingSecretError, require_secret

__all__ = ["MissingSecretError", "require_secret"]
