"""Login flows.

Every way of proving identity is a ``LoginMethod`` variant; ``AuthService.login``
checks the proof and funnels into a single ``SessionManager.issue`` call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eventpass.core.errors import (
    AuthenticationError,
    AuthorizationError,
    EventPassError,
    MalformedSignatureError,
    ValidationError,
)
from eventpass.core.security import normalize_wallet, verify_wallet_signature
from eventpass.db.store import StoreError
from eventpass.schemas.challenge import SignChallenge
from eventpass.schemas.session import Role, SessionRecord
from eventpass.services.challenges import ChallengeIssuer, parse_sign_message
from eventpass.services.credentials import CredentialStore
from eventpass.services.sessions import SessionManager

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class PasswordLogin:
    email: str
    password: str


@dataclass(frozen=True)
class WalletSignatureLogin:
    wallet: str
    message: str
    signature: str
    role: Role = Role.USER


@dataclass(frozen=True)
class ValueChallengeLogin:
    challenge_id: str


LoginMethod = PasswordLogin | WalletSignatureLogin | ValueChallengeLogin


class AuthService:
    """Verifies login proofs and mints sessions."""

    def __init__(
        self,
        sessions: SessionManager,
        challenges: ChallengeIssuer,
        credentials: CredentialStore,
    ) -> None:
        self._sessions = sessions
        self._challenges = challenges
        self._credentials = credentials

    def issue_sign_challenge(self, wallet: str, role: Role = Role.USER) -> SignChallenge:
        """Create a sign challenge; admin challenges only for the admin wallet."""
        if role == Role.ADMIN and not self._credentials.is_admin_wallet(wallet):
            logger.info("Refused admin challenge for non-admin wallet %s", normalize_wallet(wallet))
            raise AuthorizationError("Wallet is not authorized for admin access")
        return self._challenges.create_sign_challenge(wallet, role)

    def login(self, method: LoginMethod) -> tuple[str, SessionRecord]:
        """Verify ``method`` and return a fresh session token and record.

        Raises:
            AuthenticationError: Password or signature proof rejected.
            ChallengeNotFoundError, ChallengeConsumedError, ChallengeExpiredError,
            ChallengeUnconfirmedError: Value challenge could not be verified.
        """
        if isinstance(method, PasswordLogin):
            return self._login_password(method)
        if isinstance(method, WalletSignatureLogin):
            return self._login_signature(method)
        if isinstance(method, ValueChallengeLogin):
            return self._login_value_challenge(method)
        raise TypeError(f"Unsupported login method: {type(method).__name__}")

    def _login_password(self, method: PasswordLogin) -> tuple[str, SessionRecord]:
        admin = self._credentials.authenticate(method.email, method.password)
        if admin is None or not admin.wallet:
            logger.info("Password login rejected")
            raise AuthenticationError(INVALID_CREDENTIALS)
        return self._sessions.issue(admin.wallet, Role.ADMIN)

    def _login_value_challenge(self, method: ValueChallengeLogin) -> tuple[str, SessionRecord]:
        challenge = self._challenges.verify_value_challenge(method.challenge_id)
        try:
            return self._sessions.issue(challenge.wallet, Role.USER)
        except StoreError:
            self._challenges.release_value_challenge(challenge.id)
            raise

    def _login_signature(self, method: WalletSignatureLogin) -> tuple[str, SessionRecord]:
        wallet = normalize_wallet(method.wallet)
        # No signature work for wallets that can never be admin.
        if method.role == Role.ADMIN and not self._credentials.is_admin_wallet(wallet):
            logger.info("Admin wallet login rejected for %s", wallet)
            raise AuthenticationError(INVALID_CREDENTIALS)

        try:
            parsed = parse_sign_message(method.message)
        except ValidationError as err:
            raise AuthenticationError(INVALID_CREDENTIALS) from err
        if normalize_wallet(parsed.wallet) != wallet or parsed.purpose != method.role:
            raise AuthenticationError(INVALID_CREDENTIALS)

        try:
            signed = verify_wallet_signature(method.message, method.signature, wallet)
        except MalformedSignatureError as err:
            raise AuthenticationError(INVALID_CREDENTIALS) from err
        if not signed:
            logger.info("Signature mismatch for %s", wallet)
            raise AuthenticationError(INVALID_CREDENTIALS)

        try:
            self._challenges.consume_sign_challenge(
                parsed.nonce, wallet, method.message, method.role
            )
        except EventPassError as err:
            logger.info("Sign challenge rejected for %s: %s", wallet, err.message)
            raise AuthenticationError(INVALID_CREDENTIALS) from err

        return self._sessions.issue(wallet, method.role)
