"""Admin credential record."""

from __future__ import annotations

from pydantic import BaseModel


class AdminCredential(BaseModel):
    """Admin principal reachable by password or by wallet signature."""

    id: str
    email: str | None = None
    password_hash: str | None = None
    wallet: str | None = None
