"""API routes."""

from . import diagnosis

__all__ = ["diagnosis"]
