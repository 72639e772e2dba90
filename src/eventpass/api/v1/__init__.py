# src/eventpass/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import admin_router, session_router

__all__ = [
    "admin_router",
    "session_router",
]
