"""Request and response bodies for the session and admin endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from eventpass.schemas.activity import Activity, ActivityType
from eventpass.schemas.common import WALLET_REGEX, ApiModel, WalletRequest
from eventpass.schemas.session import Role, SessionRecord


class SiweRequest(WalletRequest):
    """Signed sign-in message."""

    signature: str = Field(..., min_length=1, description="Hex-encoded 65-byte signature")
    message: str = Field(..., min_length=1, description="Exact message returned by /nonce")


class ChallengeVerifyRequest(ApiModel):
    challenge_id: UUID


class PasswordLoginRequest(ApiModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=1024)


class InvalidateWalletRequest(WalletRequest):
    """Admin request to revoke every session of a wallet."""


class CsrfTokenData(ApiModel):
    token: str


class NonceData(ApiModel):
    nonce: str
    message: str
    expires_at: datetime


class ChallengeCreatedData(ApiModel):
    challenge_id: str
    amount: str
    deposit_address: str
    expires_at: datetime


class SessionData(ApiModel):
    """Identity of an issued or resolved session."""

    wallet: str
    role: Role
    session_id: str
    expires_at: datetime

    @classmethod
    def from_record(cls, record: SessionRecord) -> SessionData:
        return cls(
            wallet=record.wallet,
            role=record.role,
            session_id=record.id,
            expires_at=record.expires_at,
        )


class LoginData(ApiModel):
    message: str
    session: SessionData


class SessionStatusData(ApiModel):
    authenticated: bool
    wallet: str | None = None
    role: Role | None = None
    expires_at: datetime | None = None


class CleanupData(ApiModel):
    removed: int
    challenges_swept: int = 0


class InvalidateWalletData(ApiModel):
    wallet: str = Field(..., pattern=WALLET_REGEX)
    removed: int


class SessionStatsData(ApiModel):
    total: int
    active: int
    expired: int
    by_role: dict[str, int]


class SessionListData(ApiModel):
    sessions: list[SessionData]


class ActivityData(ApiModel):
    id: str
    type: ActivityType
    description: str
    admin_wallet: str
    details: dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_activity(cls, activity: Activity) -> ActivityData:
        return cls(**activity.model_dump())


class ActivityListData(ApiModel):
    activities: list[ActivityData]
