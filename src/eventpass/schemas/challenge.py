"""Challenge records for the sign-in and deposit proof flows."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel

from eventpass.schemas.session import Role


class ChallengeStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"


class SignChallenge(BaseModel):
    """A nonce-bearing message a wallet must sign to log in."""

    wallet: str
    nonce: str
    message: str
    purpose: Role
    expires_at: datetime
    status: ChallengeStatus = ChallengeStatus.PENDING


class ValueChallenge(BaseModel):
    """A request to transfer a fingerprint amount to the shared deposit address."""

    id: str
    wallet: str
    amount: str
    deposit_address: str
    expires_at: datetime
    status: ChallengeStatus = ChallengeStatus.PENDING


class ParsedSignMessage(BaseModel):
    """Fields recovered from a composed sign-in message."""

    purpose: Role
    wallet: str
    nonce: str
    expires_at: datetime
