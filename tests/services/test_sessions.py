# tests/services/test_sessions.py
"""Tests for session issuance, verification and revocation."""

from datetime import timedelta

import pytest
from jose import jwt
from pytest_mock import MockerFixture

from conftest import JWT_SECRET, OTHER_ACCOUNT, USER_ACCOUNT, FakeClock
from eventpass.core.errors import InvalidTokenError, TokenExpiredError
from eventpass.core.settings import Settings
from eventpass.db.store import DocumentStore, StoreError
from eventpass.schemas.session import Role
from eventpass.services.sessions import SESSIONS_KEY, SessionManager


@pytest.fixture()
def manager(store: DocumentStore, settings: Settings, clock: FakeClock) -> SessionManager:
    return SessionManager(store, settings, clock)


class TestIssue:
    def test_issue_creates_valid_session(self, manager: SessionManager, clock: FakeClock) -> None:
        token, record = manager.issue(USER_ACCOUNT.address, Role.USER)
        assert record.wallet == USER_ACCOUNT.address.lower()
        assert record.role == Role.USER
        assert record.expires_at - record.created_at == timedelta(hours=1)
        assert manager.is_valid(record.id)

        claims = manager.verify(token)
        assert claims.wallet == record.wallet
        assert claims.role == Role.USER
        assert claims.session_id == record.id
        assert claims.exp - claims.iat == 3600

    def test_token_payload_shape(self, manager: SessionManager) -> None:
        token, record = manager.issue(USER_ACCOUNT.address, Role.ADMIN)
        payload = jwt.decode(token, JWT_SECRET, algorithms=["HS256"], options={"verify_exp": False})
        assert set(payload) == {"sub", "typ", "jti", "iat", "exp"}
        assert payload["typ"] == "admin"
        assert payload["jti"] == record.id

    def test_each_issue_gets_a_new_id(self, manager: SessionManager) -> None:
        _, first = manager.issue(USER_ACCOUNT.address, Role.USER)
        _, second = manager.issue(USER_ACCOUNT.address, Role.USER)
        assert first.id != second.id


class TestVerify:
    def test_wrong_secret_is_invalid(self, manager: SessionManager) -> None:
        token = jwt.encode(
            {"sub": "0xabc", "typ": "user", "jti": "x", "iat": 0, "exp": 2**31},
            "another-secret-that-is-long-enough-to-sign",
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            manager.verify(token)

    def test_garbage_is_invalid(self, manager: SessionManager) -> None:
        with pytest.raises(InvalidTokenError):
            manager.verify("not.a.jwt")

    def test_missing_claims_are_invalid(self, manager: SessionManager) -> None:
        token = jwt.encode({"sub": "0xabc", "exp": 2**31}, JWT_SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            manager.verify(token)

    def test_unknown_role_is_invalid(self, manager: SessionManager) -> None:
        token = jwt.encode(
            {"sub": "0xabc", "typ": "root", "jti": "x", "iat": 0, "exp": 2**31},
            JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            manager.verify(token)

    def test_expired_token(self, manager: SessionManager, clock: FakeClock) -> None:
        token, _ = manager.issue(USER_ACCOUNT.address, Role.USER)
        clock.advance(3600)
        with pytest.raises(TokenExpiredError):
            manager.verify(token)

    def test_verify_does_not_consult_store(self, manager: SessionManager) -> None:
        token, record = manager.issue(USER_ACCOUNT.address, Role.USER)
        manager.invalidate(record.id)
        assert manager.verify(token).session_id == record.id
        assert not manager.is_valid(record.id)


class TestRevocation:
    def test_invalidate_is_idempotent(self, manager: SessionManager) -> None:
        _, record = manager.issue(USER_ACCOUNT.address, Role.USER)
        assert manager.invalidate(record.id) is True
        assert manager.invalidate(record.id) is False
        assert not manager.is_valid(record.id)

    def test_unknown_session_is_not_valid(self, manager: SessionManager) -> None:
        assert manager.is_valid("missing") is False

    def test_is_valid_evicts_expired_record(
        self, manager: SessionManager, store: DocumentStore, clock: FakeClock
    ) -> None:
        _, record = manager.issue(USER_ACCOUNT.address, Role.USER)
        clock.advance(3600)
        assert manager.is_valid(record.id) is False
        assert record.id not in store.get(SESSIONS_KEY, {})

    def test_invalidate_all_for_wallet_only_touches_that_wallet(
        self, manager: SessionManager
    ) -> None:
        manager.issue(USER_ACCOUNT.address, Role.USER)
        manager.issue(USER_ACCOUNT.address.lower(), Role.USER)
        _, other = manager.issue(OTHER_ACCOUNT.address, Role.USER)

        shouted = "0x" + USER_ACCOUNT.address[2:].upper()
        assert manager.invalidate_all_for_wallet(shouted) == 2
        assert manager.is_valid(other.id)
        assert manager.invalidate_all_for_wallet(USER_ACCOUNT.address) == 0


class TestCleanup:
    def test_removes_exactly_expired_sessions(
        self, manager: SessionManager, clock: FakeClock
    ) -> None:
        _, old = manager.issue(USER_ACCOUNT.address, Role.USER)
        clock.advance(1800)
        _, young = manager.issue(OTHER_ACCOUNT.address, Role.USER)
        clock.advance(1800)  # old expires exactly now

        assert manager.cleanup_expired() == 1
        assert manager.get(old.id) is None
        assert manager.get(young.id) is not None
        assert manager.cleanup_expired() == 0

    def test_store_failure_reports_zero(
        self, manager: SessionManager, mocker: MockerFixture
    ) -> None:
        mocker.patch.object(DocumentStore, "_load", side_effect=StoreError("db down"))
        assert manager.cleanup_expired() == 0


class TestIntrospection:
    def test_stats_counts_by_liveness_and_role(
        self, manager: SessionManager, clock: FakeClock
    ) -> None:
        manager.issue(USER_ACCOUNT.address, Role.USER)
        clock.advance(1800)
        manager.issue(OTHER_ACCOUNT.address, Role.ADMIN)
        clock.advance(1800)

        stats = manager.stats()
        assert stats.total == 2
        assert stats.active == 1
        assert stats.expired == 1
        assert stats.by_role == {"user": 1, "admin": 1}

    def test_stats_does_not_evict(self, manager: SessionManager, clock: FakeClock) -> None:
        manager.issue(USER_ACCOUNT.address, Role.USER)
        clock.advance(7200)
        manager.stats()
        assert manager.stats().total == 1

    def test_active_sessions_filters_wallet_and_expiry(
        self, manager: SessionManager, clock: FakeClock
    ) -> None:
        manager.issue(USER_ACCOUNT.address, Role.USER)
        clock.advance(3000)
        _, fresh = manager.issue(USER_ACCOUNT.address, Role.USER)
        manager.issue(OTHER_ACCOUNT.address, Role.USER)
        clock.advance(600)

        active = manager.active_sessions(USER_ACCOUNT.address)
        assert [record.id for record in active] == [fresh.id]
        assert len(manager.active_sessions()) == 2
