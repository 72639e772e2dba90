"""Sign-in and deposit challenges.

Two proofs of wallet ownership are supported:

* sign challenges: the wallet signs a server-composed message carrying a
  one-time nonce (``personal_sign``);
* value challenges: the wallet transfers a small fingerprint amount to the
  organisation's deposit address.

Both are single use. A challenge that has been verified, or whose expiry has
passed, can never mint a session again.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Final

from eventpass.core.errors import (
    ChallengeConsumedError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeUnconfirmedError,
    ValidationError,
)
from eventpass.core.security import normalize_wallet
from eventpass.core.settings import WALLET_PATTERN, Settings
from eventpass.db.store import DocumentStore, StoreError
from eventpass.db.time import Clock, utcnow
from eventpass.schemas.challenge import (
    ChallengeStatus,
    ParsedSignMessage,
    SignChallenge,
    ValueChallenge,
)
from eventpass.schemas.session import Role
from eventpass.services.deposits import DepositVerifier, RejectingDepositVerifier

logger = logging.getLogger(__name__)

SIGN_CHALLENGES_KEY: Final[str] = "sign_challenges"
VALUE_CHALLENGES_KEY: Final[str] = "value_challenges"
# Verified and expired value challenges are kept this long past expiry.
VALUE_CHALLENGE_RETENTION: Final[timedelta] = timedelta(days=1)

EXPIRES_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%SZ"
PURPOSE_TITLES: Final[dict[Role, str]] = {
    Role.USER: "EventPass Registration",
    Role.ADMIN: "EventPass Admin Login",
}
_TITLE_PURPOSES: Final[dict[str, Role]] = {title: role for role, title in PURPOSE_TITLES.items()}


def compose_sign_message(purpose: Role, wallet: str, nonce: str, expires_at: datetime) -> str:
    """Return the exact text a wallet must sign for a sign challenge."""
    return "\n".join(
        [
            PURPOSE_TITLES[purpose],
            f"Wallet: {wallet}",
            f"Nonce: {nonce}",
            f"Expires: {expires_at.astimezone(UTC).strftime(EXPIRES_FORMAT)}",
        ]
    )


def parse_sign_message(message: str) -> ParsedSignMessage:
    """Recover purpose, wallet, nonce and expiry from a composed message.

    Raises:
        ValidationError: If the text is not a message produced by
            :func:`compose_sign_message`.
    """
    lines = message.strip().splitlines()
    if len(lines) != 4:
        raise ValidationError("Malformed sign-in message")

    purpose = _TITLE_PURPOSES.get(lines[0].strip())
    if purpose is None:
        raise ValidationError("Unknown sign-in message purpose")

    fields: dict[str, str] = {}
    for line, label in zip(lines[1:], ("Wallet", "Nonce", "Expires"), strict=True):
        prefix = f"{label}: "
        if not line.startswith(prefix):
            raise ValidationError(f"Sign-in message is missing {label}")
        fields[label] = line[len(prefix):].strip()

    if not WALLET_PATTERN.match(fields["Wallet"]):
        raise ValidationError("Sign-in message wallet is not an address")
    if not fields["Nonce"]:
        raise ValidationError("Sign-in message nonce is empty")
    try:
        expires_at = datetime.strptime(fields["Expires"], EXPIRES_FORMAT).replace(tzinfo=UTC)
    except ValueError as err:
        raise ValidationError("Sign-in message expiry is not a timestamp") from err

    return ParsedSignMessage(
        purpose=purpose,
        wallet=fields["Wallet"],
        nonce=fields["Nonce"],
        expires_at=expires_at,
    )


def random_amount() -> str:
    """Return a fingerprint amount between ``0.100`` and ``0.999``."""
    return f"{(secrets.randbelow(900) + 100) / 1000:.3f}"


class ChallengeIssuer:
    """Creates, verifies and sweeps wallet ownership challenges."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings,
        clock: Clock = utcnow,
        deposit_verifier: DepositVerifier | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock
        self._deposits = deposit_verifier or RejectingDepositVerifier()

    def _now(self) -> datetime:
        # Messages carry whole seconds; keep stored expiry identical to the signed text.
        return self._clock().replace(microsecond=0)

    # --- Sign challenges ------------------------------------------------------------
    def create_sign_challenge(self, wallet: str, purpose: Role = Role.USER) -> SignChallenge:
        """Persist a fresh sign challenge and return it."""
        wallet = normalize_wallet(wallet)
        nonce = uuid.uuid4().hex
        expires_at = self._now() + timedelta(seconds=self._settings.sign_challenge_ttl_seconds)
        challenge = SignChallenge(
            wallet=wallet,
            nonce=nonce,
            message=compose_sign_message(purpose, wallet, nonce, expires_at),
            purpose=purpose,
            expires_at=expires_at,
        )
        with self._store.transaction(SIGN_CHALLENGES_KEY) as challenges:
            challenges[nonce] = challenge.model_dump(mode="json")
        logger.info("Issued %s sign challenge for %s", purpose.value, wallet)
        return challenge

    def consume_sign_challenge(
        self,
        nonce: str,
        wallet: str,
        message: str,
        purpose: Role,
    ) -> SignChallenge:
        """Mark a pending sign challenge as verified.

        The challenge must exist, be pending and unexpired, and match the
        wallet, purpose and exact message. The check and the transition happen
        under the store lock so only one caller can consume a nonce.

        Raises:
            ChallengeNotFoundError: No challenge for ``nonce``.
            ChallengeConsumedError: The challenge was already used.
            ChallengeExpiredError: The challenge is past its expiry.
            ValidationError: Wallet, purpose or message do not match.
        """
        wallet = normalize_wallet(wallet)
        now = self._clock()
        with self._store.transaction(SIGN_CHALLENGES_KEY) as challenges:
            raw = challenges.get(nonce)
            if raw is None:
                raise ChallengeNotFoundError()
            challenge = SignChallenge.model_validate(raw)
            if challenge.status == ChallengeStatus.VERIFIED:
                raise ChallengeConsumedError()
            if challenge.status == ChallengeStatus.EXPIRED or now > challenge.expires_at:
                raise ChallengeExpiredError()
            if challenge.wallet != wallet or challenge.purpose != purpose:
                raise ValidationError("Challenge does not belong to this wallet")
            if challenge.message != message:
                raise ValidationError("Signed message does not match challenge")

            challenge = challenge.model_copy(update={"status": ChallengeStatus.VERIFIED})
            challenges[nonce] = challenge.model_dump(mode="json")
        return challenge

    # --- Value challenges -----------------------------------------------------------
    def create_value_challenge(self, wallet: str) -> ValueChallenge:
        """Persist a pending value challenge for ``wallet``."""
        challenge = ValueChallenge(
            id=str(uuid.uuid4()),
            wallet=normalize_wallet(wallet),
            amount=random_amount(),
            deposit_address=self._settings.org_deposit_address,
            expires_at=self._clock() + timedelta(seconds=self._settings.challenge_ttl_seconds),
        )
        with self._store.transaction(VALUE_CHALLENGES_KEY) as challenges:
            challenges[challenge.id] = challenge.model_dump(mode="json")
        logger.info("Issued value challenge %s for %s", challenge.id, challenge.wallet)
        return challenge

    def get_value_challenge(self, challenge_id: str) -> ValueChallenge | None:
        raw = self._store.get(VALUE_CHALLENGES_KEY, {}).get(challenge_id)
        return ValueChallenge.model_validate(raw) if raw else None

    def verify_value_challenge(self, challenge_id: str) -> ValueChallenge:
        """Transition a pending value challenge to verified.

        The deposit verifier is consulted with the store unlocked; the
        challenge is re-checked afterwards, so a concurrent verification or
        expiry wins. A refusal leaves the challenge pending. A challenge found
        past its expiry is persisted as expired before the error is raised.

        Raises:
            ChallengeNotFoundError: Unknown challenge id.
            ChallengeConsumedError: Already verified.
            ChallengeExpiredError: Expired, now or previously.
            ChallengeUnconfirmedError: The deposit has not been observed.
        """
        challenge = self._transition_pending(challenge_id)
        if not self._deposits.confirm(challenge):
            raise ChallengeUnconfirmedError()
        challenge = self._transition_pending(challenge_id, ChallengeStatus.VERIFIED)
        logger.info("Value challenge %s verified for %s", challenge.id, challenge.wallet)
        return challenge

    def release_value_challenge(self, challenge_id: str) -> None:
        """Return a verified challenge to pending after its session failed to issue."""
        with self._store.transaction(VALUE_CHALLENGES_KEY) as challenges:
            raw = challenges.get(challenge_id)
            if raw is None:
                return
            challenge = ValueChallenge.model_validate(raw)
            if challenge.status == ChallengeStatus.VERIFIED:
                released = challenge.model_copy(update={"status": ChallengeStatus.PENDING})
                challenges[challenge_id] = released.model_dump(mode="json")
                logger.warning("Value challenge %s released back to pending", challenge_id)

    def _transition_pending(
        self,
        challenge_id: str,
        status: ChallengeStatus | None = None,
    ) -> ValueChallenge:
        """Check a value challenge is pending and unexpired, then apply ``status``."""
        now = self._clock()
        expired = False
        with self._store.transaction(VALUE_CHALLENGES_KEY) as challenges:
            raw = challenges.get(challenge_id)
            if raw is None:
                raise ChallengeNotFoundError()
            challenge = ValueChallenge.model_validate(raw)
            if challenge.status == ChallengeStatus.VERIFIED:
                raise ChallengeConsumedError()
            if challenge.status == ChallengeStatus.EXPIRED:
                raise ChallengeExpiredError()

            if now > challenge.expires_at:
                challenge = challenge.model_copy(update={"status": ChallengeStatus.EXPIRED})
                expired = True
            elif status is not None:
                challenge = challenge.model_copy(update={"status": status})
            challenges[challenge_id] = challenge.model_dump(mode="json")

        # Raised after the block so the expired transition is written.
        if expired:
            raise ChallengeExpiredError()
        return challenge

    # --- Maintenance ----------------------------------------------------------------
    def cleanup_expired(self) -> int:
        """Sweep sign and value challenges past their expiry.

        Expired sign challenges are deleted. Pending value challenges past
        expiry are marked expired; verified or expired ones are deleted once
        ``VALUE_CHALLENGE_RETENTION`` has also passed. Storage failures are
        logged and the other collection is still swept.

        Returns:
            Number of challenges removed or transitioned.
        """
        now = self._clock()
        changed = 0
        try:
            with self._store.transaction(SIGN_CHALLENGES_KEY) as challenges:
                stale = [
                    nonce
                    for nonce, raw in challenges.items()
                    if now > SignChallenge.model_validate(raw).expires_at
                ]
                for nonce in stale:
                    del challenges[nonce]
            changed += len(stale)
        except StoreError as err:
            logger.error("Sign challenge cleanup failed: %s", err)

        try:
            changed += self._sweep_value_challenges(now)
        except StoreError as err:
            logger.error("Value challenge cleanup failed: %s", err)

        if changed:
            logger.info("Swept %d expired challenges", changed)
        return changed

    def _sweep_value_challenges(self, now: datetime) -> int:
        changed = 0
        with self._store.transaction(VALUE_CHALLENGES_KEY) as challenges:
            for challenge_id, raw in list(challenges.items()):
                challenge = ValueChallenge.model_validate(raw)
                if now <= challenge.expires_at:
                    continue
                if challenge.status == ChallengeStatus.PENDING:
                    expired = challenge.model_copy(update={"status": ChallengeStatus.EXPIRED})
                    challenges[challenge_id] = expired.model_dump(mode="json")
                elif now > challenge.expires_at + VALUE_CHALLENGE_RETENTION:
                    del challenges[challenge_id]
                else:
                    continue
                changed += 1
        return changed
