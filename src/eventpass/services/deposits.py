"""Deposit confirmation for value challenges.

A value challenge proves wallet ownership only if the fingerprint amount
actually arrived at the deposit address. Chain access is not part of this
service, so confirmation is delegated to a ``DepositVerifier``.
"""

from __future__ import annotations

import logging
from typing import Protocol

from eventpass.schemas.challenge import ValueChallenge

logger = logging.getLogger(__name__)


class DepositVerifier(Protocol):
    """Decides whether the deposit for a value challenge has been observed."""

    def confirm(self, challenge: ValueChallenge) -> bool: ...


class RejectingDepositVerifier:
    """Refuses every challenge until a real chain observer is configured."""

    def confirm(self, challenge: ValueChallenge) -> bool:
        logger.info("Deposit for challenge %s not confirmed: no chain observer", challenge.id)
        return False


class TrustedDepositVerifier:
    """Accepts every challenge without looking at the chain.

    Only suitable for development; any caller who knows a challenge id can log
    in as the challenge's wallet.
    """

    def confirm(self, challenge: ValueChallenge) -> bool:
        logger.warning(
            "Accepting deposit for challenge %s (wallet %s) without chain confirmation",
            challenge.id,
            challenge.wallet,
        )
        return True


def get_deposit_verifier(mode: str) -> DepositVerifier:
    """Return the verifier for ``DEPOSIT_VERIFICATION_MODE``."""
    if mode == "trusted":
        return TrustedDepositVerifier()
    if mode == "reject":
        return RejectingDepositVerifier()
    raise ValueError(f"Unknown deposit verification mode: {mode}")
