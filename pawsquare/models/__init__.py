"""Convenience exports for ORM models."""
from .ai_usage import AiUsage

__all__ = ["AiUsage"]
