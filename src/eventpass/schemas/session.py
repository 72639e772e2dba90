"""Session records, token claims and request identity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from eventpass.db.time import from_epoch


class Role(StrEnum):
    """Principal kinds a session can carry."""

    USER = "user"
    ADMIN = "admin"


class SessionRecord(BaseModel):
    """Authoritative server-side session. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    wallet: str
    role: Role
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionClaims(BaseModel):
    """Decoded payload of a session token."""

    model_config = ConfigDict(frozen=True)

    sub: str = Field(..., min_length=1)
    typ: Role
    jti: str = Field(..., min_length=1)
    iat: int
    exp: int

    @property
    def wallet(self) -> str:
        return self.sub

    @property
    def role(self) -> Role:
        return self.typ

    @property
    def session_id(self) -> str:
        return self.jti

    @property
    def expires_at(self) -> datetime:
        return from_epoch(self.exp)


@dataclass(frozen=True)
class SessionIdentity:
    """Identity attached to a request after successful session resolution."""

    wallet: str
    role: Role
    session_id: str
    expires_at: datetime


class SessionStats(BaseModel):
    """Read-only snapshot of the session store."""

    total: int
    active: int
    expired: int
    by_role: dict[str, int]
