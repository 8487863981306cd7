"""Operator-facing status endpoints for a governor."""

from .routes import create_governor_router

__all__ = ["create_governor_router"]
