# src/eventpass/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .session import router as session_router

__all__ = [
    "admin_router",
    "session_router",
]
