# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ADMIN_PASSWORD = "correct horse battery staple"
ADMIN_EMAIL = "admin@eventpass.test"
ADMIN_PASSWORD_HASH = bcrypt.hashpw(ADMIN_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()

ADMIN_ACCOUNT: LocalAccount = Account.from_key("0x" + "a1" * 32)
USER_ACCOUNT: LocalAccount = Account.from_key("0x" + "b2" * 32)
OTHER_ACCOUNT: LocalAccount = Account.from_key("0x" + "c3" * 32)
DEPOSIT_ADDRESS = "0x" + "d4" * 20
JWT_SECRET = "test-secret-key-that-is-at-least-32-bytes-long"

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", JWT_SECRET)
os.environ.setdefault("ADMIN_WALLET", ADMIN_ACCOUNT.address)
os.environ.setdefault("ADMIN_EMAIL", ADMIN_EMAIL)
os.environ.setdefault("ADMIN_PASSWORD_HASH", ADMIN_PASSWORD_HASH)
os.environ.setdefault("ORG_DEPOSIT_ADDRESS", DEPOSIT_ADDRESS)
os.environ.setdefault("DATABASE_URL", "sqlite://")

from eventpass.core.settings import Settings  # noqa: E402
from eventpass.db.session import build_session_factory, create_tables, drop_tables  # noqa: E402
from eventpass.db.store import DocumentStore  # noqa: E402
from eventpass.main import create_app  # noqa: E402
from eventpass.services.container import AppServices, build_services  # noqa: E402
from eventpass.services.deposits import DepositVerifier, TrustedDepositVerifier  # noqa: E402

START_TIME = datetime(2026, 5, 1, 12, 0, 0, tzinfo=UTC)

API = "/api/v1"


class FakeClock:
    """Controllable time source shared by every service under test."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


def build_settings(**overrides: Any) -> Settings:
    """Return test settings; overrides use the environment variable names."""
    values: dict[str, Any] = {
        "ENVIRONMENT": "test",
        "JWT_SECRET": JWT_SECRET,
        "ADMIN_WALLET": ADMIN_ACCOUNT.address,
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD_HASH": ADMIN_PASSWORD_HASH,
        "ORG_DEPOSIT_ADDRESS": DEPOSIT_ADDRESS,
        "DEPOSIT_VERIFICATION_MODE": "trusted",
        "DATABASE_URL": "sqlite://",
    }
    values.update(overrides)
    return Settings(**values)


def sign(account: LocalAccount, message: str) -> str:
    """Sign ``message`` with ``personal_sign`` semantics and return 0x-hex."""
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> Settings:
    return build_settings()


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def store(session_factory: sessionmaker[Session]) -> DocumentStore:
    return DocumentStore(session_factory)


@pytest.fixture()
def deposit_verifier() -> DepositVerifier:
    return TrustedDepositVerifier()


@pytest.fixture()
def services(
    settings: Settings,
    session_factory: sessionmaker[Session],
    clock: FakeClock,
    deposit_verifier: DepositVerifier,
) -> AppServices:
    """Service graph wired the way the application wires it."""
    services = build_services(
        settings,
        session_factory,
        clock=clock,
        deposit_verifier=deposit_verifier,
    )
    services.credentials.bootstrap(settings.admin_email, settings.admin_password_hash)
    return services


@pytest.fixture()
def app(
    settings: Settings,
    engine: Engine,
    clock: FakeClock,
    deposit_verifier: DepositVerifier,
) -> FastAPI:
    return create_app(settings, engine=engine, clock=clock, deposit_verifier=deposit_verifier)


@pytest.fixture()
def app_services(app: FastAPI) -> AppServices:
    services: AppServices = app.state.services
    return services


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


def fetch_csrf(client: TestClient) -> dict[str, str]:
    """Obtain a CSRF token and return the matching request header."""
    response = client.get(f"{API}/session/csrf-token")
    assert response.status_code == 200
    return {"x-csrf-token": response.json()["data"]["token"]}


@pytest.fixture()
def csrf_headers(client: TestClient) -> dict[str, str]:
    return fetch_csrf(client)


def login_with_wallet(
    client: TestClient,
    account: LocalAccount,
    headers: dict[str, str],
    *,
    admin: bool = False,
) -> dict[str, Any]:
    """Run the nonce -> sign -> siwe flow and return the session payload."""
    base = f"{API}/admin/login/wallet" if admin else f"{API}/session"
    nonce = client.post(f"{base}/nonce", json={"wallet": account.address}, headers=headers)
    assert nonce.status_code == 200, nonce.text
    message = nonce.json()["data"]["message"]
    response = client.post(
        f"{base}/siwe",
        json={"wallet": account.address, "message": message, "signature": sign(account, message)},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    session: dict[str, Any] = response.json()["data"]["session"]
    return session


@pytest.fixture()
def user_login(client: TestClient, csrf_headers: dict[str, str]) -> dict[str, Any]:
    """Log the client in as a regular wallet user."""
    return login_with_wallet(client, USER_ACCOUNT, csrf_headers)


@pytest.fixture()
def admin_login(client: TestClient, csrf_headers: dict[str, str]) -> dict[str, Any]:
    """Log the client in as the configured admin via password."""
    response = client.post(
        f"{API}/admin/login/password",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
        headers=csrf_headers,
    )
    assert response.status_code == 200, response.text
    session: dict[str, Any] = response.json()["data"]["session"]
    return session

