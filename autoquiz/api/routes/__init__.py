"""API routes package."""

from . import auto_create

__all__ = ["auto_create"]
