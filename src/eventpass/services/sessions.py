"""Session issuance, verification and revocation.

A session is valid only while its record exists in the store and its expiry
lies in the future. The signed token carries the session id (``jti``); a
token whose signature and expiry check out is still rejected once the record
behind it is gone.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from typing import Any, Final

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from eventpass.core.errors import InvalidTokenError, TokenExpiredError
from eventpass.core.security import normalize_wallet
from eventpass.core.settings import Settings
from eventpass.db.store import DocumentStore, StoreError
from eventpass.db.time import Clock, from_epoch, to_epoch, utcnow
from eventpass.schemas.session import Role, SessionClaims, SessionRecord, SessionStats

logger = logging.getLogger(__name__)

SESSIONS_KEY: Final[str] = "sessions"


class SessionManager:
    """Server-side session store fronted by signed tokens."""

    def __init__(self, store: DocumentStore, settings: Settings, clock: Clock = utcnow) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock

    def issue(self, wallet: str, role: Role) -> tuple[str, SessionRecord]:
        """Create a session record and return its signed token."""
        wallet = normalize_wallet(wallet)
        issued_at = to_epoch(self._clock())
        expires_at = issued_at + self._settings.session_ttl_seconds
        record = SessionRecord(
            id=str(uuid.uuid4()),
            wallet=wallet,
            role=role,
            created_at=from_epoch(issued_at),
            expires_at=from_epoch(expires_at),
        )
        with self._store.transaction(SESSIONS_KEY) as sessions:
            sessions[record.id] = record.model_dump(mode="json")

        claims: dict[str, Any] = {
            "sub": wallet,
            "typ": role.value,
            "jti": record.id,
            "iat": issued_at,
            "exp": expires_at,
        }
        token: str = jwt.encode(
            claims,
            self._settings.jwt_secret,
            algorithm=self._settings.jwt_algorithm,
        )
        logger.info("Issued %s session %s for %s", role.value, record.id, wallet)
        return token, record

    def verify(self, token: str) -> SessionClaims:
        """Check a token's signature, structure and expiry.

        The store is not consulted; combine with :meth:`is_valid`.

        Raises:
            InvalidTokenError: Bad signature or malformed claims.
            TokenExpiredError: ``exp`` is not in the future.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                # Expiry is compared against the injected clock below.
                options={"verify_exp": False, "verify_iat": False},
            )
            claims = SessionClaims.model_validate(payload)
        except (JWTError, PydanticValidationError) as err:
            raise InvalidTokenError() from err

        if to_epoch(self._clock()) >= claims.exp:
            raise TokenExpiredError()
        return claims

    def get(self, session_id: str) -> SessionRecord | None:
        raw = self._store.get(SESSIONS_KEY, {}).get(session_id)
        return SessionRecord.model_validate(raw) if raw else None

    def is_valid(self, session_id: str) -> bool:
        """Return True if the session exists and has not expired.

        May mutate the store: an expired record found here is deleted.
        """
        now = self._clock()
        with self._store.transaction(SESSIONS_KEY) as sessions:
            raw = sessions.get(session_id)
            if raw is None:
                return False
            if SessionRecord.model_validate(raw).is_expired(now):
                del sessions[session_id]
                logger.debug("Evicted expired session %s", session_id)
                return False
        return True

    def invalidate(self, session_id: str) -> bool:
        """Delete a session. Returns False if it was already gone."""
        with self._store.transaction(SESSIONS_KEY) as sessions:
            removed = sessions.pop(session_id, None) is not None
        if removed:
            logger.info("Invalidated session %s", session_id)
        return removed

    def invalidate_all_for_wallet(self, wallet: str) -> int:
        """Delete every session held by ``wallet`` and return how many."""
        wallet = normalize_wallet(wallet)
        with self._store.transaction(SESSIONS_KEY) as sessions:
            doomed = [sid for sid, raw in sessions.items() if raw.get("wallet") == wallet]
            for sid in doomed:
                del sessions[sid]
        logger.info("Invalidated %d sessions for %s", len(doomed), wallet)
        return len(doomed)

    def cleanup_expired(self) -> int:
        """Remove sessions whose expiry is at or before now.

        Storage failures are logged and reported as nothing removed.
        """
        now = self._clock()
        try:
            with self._store.transaction(SESSIONS_KEY) as sessions:
                expired = [
                    sid
                    for sid, raw in sessions.items()
                    if SessionRecord.model_validate(raw).is_expired(now)
                ]
                for sid in expired:
                    del sessions[sid]
        except StoreError as err:
            logger.error("Session cleanup failed: %s", err)
            return 0
        if expired:
            logger.info("Removed %d expired sessions", len(expired))
        return len(expired)

    def stats(self) -> SessionStats:
        """Return counts by liveness and role without modifying the store."""
        now = self._clock()
        records = self._records()
        active = sum(1 for record in records if not record.is_expired(now))
        by_role = Counter(record.role.value for record in records)
        return SessionStats(
            total=len(records),
            active=active,
            expired=len(records) - active,
            by_role={role.value: by_role.get(role.value, 0) for role in Role},
        )

    def active_sessions(self, wallet: str | None = None) -> list[SessionRecord]:
        """Return unexpired sessions, optionally only those of ``wallet``."""
        now = self._clock()
        wanted = normalize_wallet(wallet) if wallet else None
        sessions = [
            record
            for record in self._records()
            if not record.is_expired(now) and (wanted is None or record.wallet == wanted)
        ]
        return sorted(sessions, key=lambda record: record.created_at, reverse=True)

    def _records(self) -> list[SessionRecord]:
        stored = self._store.get(SESSIONS_KEY, {})
        return [SessionRecord.model_validate(raw) for raw in stored.values()]

