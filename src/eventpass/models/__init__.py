# src/eventpass/models/__init__.py
"""SQLAlchemy models for the EventPass application."""

from .document import Document

__all__ = ["Document"]
