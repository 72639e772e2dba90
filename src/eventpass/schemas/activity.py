"""Audit trail entries for privileged actions."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ActivityType(StrEnum):
    REGISTRATION_CREATED = "registration_created"
    REGISTRATION_UPDATED = "registration_updated"
    REGISTRATION_DELETED = "registration_deleted"
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    ADMIN_LOGIN = "admin_login"
    ADMIN_LOGOUT = "admin_logout"
    SESSIONS_CLEANUP = "sessions_cleanup"
    SESSIONS_INVALIDATED = "sessions_invalidated"


class Activity(BaseModel):
    """One recorded admin action."""

    id: str
    type: ActivityType
    description: str
    admin_wallet: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime

    @property
    def target_wallet(self) -> str | None:
        target = self.details.get("target_wallet")
        return str(target) if target else None
