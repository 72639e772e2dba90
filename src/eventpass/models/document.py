# src/eventpass/models/document.py
"""Storage row for one JSON document."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from eventpass.db.session import Base
from eventpass.db.time import utcnow


class Document(Base):
    """A whole collection (sessions, challenges, ...) stored under one key.

    Writes always replace ``body`` in full.
    """

    __tablename__ = "documents"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    body: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
