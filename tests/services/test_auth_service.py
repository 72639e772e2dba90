# tests/services/test_auth_service.py
"""Tests for the login flows."""

import pytest
from pytest_mock import MockerFixture

from conftest import (
    ADMIN_ACCOUNT,
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    OTHER_ACCOUNT,
    USER_ACCOUNT,
    FakeClock,
    sign,
)
from eventpass.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ChallengeConsumedError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
)
from eventpass.db.store import StoreError
from eventpass.schemas.challenge import ChallengeStatus
from eventpass.schemas.session import Role
from eventpass.services import auth as auth_module
from eventpass.services.auth import PasswordLogin, ValueChallengeLogin, WalletSignatureLogin
from eventpass.services.container import AppServices


def _signed_login(services: AppServices, account, role: Role = Role.USER) -> WalletSignatureLogin:
    challenge = services.auth.issue_sign_challenge(account.address, role)
    return WalletSignatureLogin(
        wallet=account.address,
        message=challenge.message,
        signature=sign(account, challenge.message),
        role=role,
    )


class TestWalletSignatureLogin:
    def test_user_login_issues_session(self, services: AppServices) -> None:
        token, record = services.auth.login(_signed_login(services, USER_ACCOUNT))
        assert record.wallet == USER_ACCOUNT.address.lower()
        assert record.role == Role.USER
        assert services.sessions.verify(token).session_id == record.id
        assert services.sessions.is_valid(record.id)

    def test_mixed_case_wallet_is_accepted(self, services: AppServices) -> None:
        challenge = services.auth.issue_sign_challenge(USER_ACCOUNT.address.lower())
        login = WalletSignatureLogin(
            wallet="0x" + USER_ACCOUNT.address[2:].upper(),
            message=challenge.message,
            signature=sign(USER_ACCOUNT, challenge.message),
        )
        _, record = services.auth.login(login)
        assert record.wallet == USER_ACCOUNT.address.lower()

    def test_replayed_signature_never_mints_second_session(self, services: AppServices) -> None:
        login = _signed_login(services, USER_ACCOUNT)
        services.auth.login(login)
        with pytest.raises(AuthenticationError):
            services.auth.login(login)
        assert services.sessions.stats().total == 1

    def test_signature_from_other_key_is_rejected(self, services: AppServices) -> None:
        challenge = services.auth.issue_sign_challenge(USER_ACCOUNT.address)
        login = WalletSignatureLogin(
            wallet=USER_ACCOUNT.address,
            message=challenge.message,
            signature=sign(OTHER_ACCOUNT, challenge.message),
        )
        with pytest.raises(AuthenticationError) as excinfo:
            services.auth.login(login)
        assert excinfo.value.message == "Invalid credentials"

    def test_malformed_signature_is_authentication_error(self, services: AppServices) -> None:
        challenge = services.auth.issue_sign_challenge(USER_ACCOUNT.address)
        login = WalletSignatureLogin(
            wallet=USER_ACCOUNT.address, message=challenge.message, signature="0x1234"
        )
        with pytest.raises(AuthenticationError):
            services.auth.login(login)

    def test_message_for_other_wallet_is_rejected(self, services: AppServices) -> None:
        challenge = services.auth.issue_sign_challenge(OTHER_ACCOUNT.address)
        login = WalletSignatureLogin(
            wallet=USER_ACCOUNT.address,
            message=challenge.message,
            signature=sign(USER_ACCOUNT, challenge.message),
        )
        with pytest.raises(AuthenticationError):
            services.auth.login(login)

    def test_expired_challenge_is_rejected(self, services: AppServices, clock: FakeClock) -> None:
        login = _signed_login(services, USER_ACCOUNT)
        clock.advance(301)
        with pytest.raises(AuthenticationError):
            services.auth.login(login)

    def test_unparseable_message_is_rejected(self, services: AppServices) -> None:
        login = WalletSignatureLogin(
            wallet=USER_ACCOUNT.address,
            message="please let me in",
            signature=sign(USER_ACCOUNT, "please let me in"),
        )
        with pytest.raises(AuthenticationError):
            services.auth.login(login)


class TestAdminWalletLogin:
    def test_admin_wallet_gets_admin_session(self, services: AppServices) -> None:
        _, record = services.auth.login(_signed_login(services, ADMIN_ACCOUNT, Role.ADMIN))
        assert record.role == Role.ADMIN
        assert record.wallet == ADMIN_ACCOUNT.address.lower()

    def test_non_admin_wallet_rejected_before_signature_check(
        self, services: AppServices, mocker: MockerFixture
    ) -> None:
        verify = mocker.spy(auth_module, "verify_wallet_signature")
        challenge = services.challenges.create_sign_challenge(USER_ACCOUNT.address, Role.ADMIN)
        login = WalletSignatureLogin(
            wallet=USER_ACCOUNT.address,
            message=challenge.message,
            signature=sign(USER_ACCOUNT, challenge.message),
            role=Role.ADMIN,
        )
        with pytest.raises(AuthenticationError):
            services.auth.login(login)
        verify.assert_not_called()

    def test_user_challenge_cannot_open_admin_session(self, services: AppServices) -> None:
        login = _signed_login(services, ADMIN_ACCOUNT, Role.USER)
        admin_login = WalletSignatureLogin(
            wallet=login.wallet, message=login.message, signature=login.signature, role=Role.ADMIN
        )
        with pytest.raises(AuthenticationError):
            services.auth.login(admin_login)

    def test_admin_challenge_refused_for_other_wallets(self, services: AppServices) -> None:
        with pytest.raises(AuthorizationError):
            services.auth.issue_sign_challenge(USER_ACCOUNT.address, Role.ADMIN)


class TestPasswordLogin:
    def test_password_login_binds_admin_wallet(self, services: AppServices) -> None:
        _, record = services.auth.login(PasswordLogin(ADMIN_EMAIL, ADMIN_PASSWORD))
        assert record.role == Role.ADMIN
        assert record.wallet == ADMIN_ACCOUNT.address.lower()

    @pytest.mark.parametrize(
        ("email", "password"),
        [(ADMIN_EMAIL, "wrong"), ("nobody@eventpass.test", ADMIN_PASSWORD)],
    )
    def test_bad_credentials_are_indistinguishable(
        self, services: AppServices, email: str, password: str
    ) -> None:
        with pytest.raises(AuthenticationError) as excinfo:
            services.auth.login(PasswordLogin(email, password))
        assert excinfo.value.message == "Invalid credentials"


class TestValueChallengeLogin:
    def test_verified_challenge_issues_user_session(self, services: AppServices) -> None:
        challenge = services.challenges.create_value_challenge(USER_ACCOUNT.address)
        _, record = services.auth.login(ValueChallengeLogin(challenge.id))
        assert record.role == Role.USER
        assert record.wallet == USER_ACCOUNT.address.lower()

    def test_challenge_errors_surface_typed(
        self, services: AppServices, clock: FakeClock
    ) -> None:
        with pytest.raises(ChallengeNotFoundError):
            services.auth.login(ValueChallengeLogin("missing"))

        challenge = services.challenges.create_value_challenge(USER_ACCOUNT.address)
        services.auth.login(ValueChallengeLogin(challenge.id))
        with pytest.raises(ChallengeConsumedError):
            services.auth.login(ValueChallengeLogin(challenge.id))
        assert services.sessions.stats().total == 1

        stale = services.challenges.create_value_challenge(USER_ACCOUNT.address)
        clock.advance(301)
        with pytest.raises(ChallengeExpiredError):
            services.auth.login(ValueChallengeLogin(stale.id))

    def test_failed_session_issue_releases_the_challenge(
        self, services: AppServices, mocker: MockerFixture
    ) -> None:
        challenge = services.challenges.create_value_challenge(USER_ACCOUNT.address)
        issue = mocker.patch.object(
            services.sessions, "issue", side_effect=StoreError("db down")
        )
        with pytest.raises(StoreError):
            services.auth.login(ValueChallengeLogin(challenge.id))
        released = services.challenges.get_value_challenge(challenge.id)
        assert released.status == ChallengeStatus.PENDING

        mocker.stop(issue)
        _, record = services.auth.login(ValueChallengeLogin(challenge.id))
        assert record.wallet == USER_ACCOUNT.address.lower()


def test_unknown_login_method_is_type_error(services: AppServices) -> None:
    with pytest.raises(TypeError):
        services.auth.login(object())  # type: ignore[arg-type]
