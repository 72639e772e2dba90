"""Shared API dependencies for access control.

Checks run in a fixed order for every protected request: rate limit, session
resolution, role check, then CSRF for mutating methods. The general rate limit
is applied by middleware before routing; the auth and admin limits are router
or route dependencies declared ahead of the session guards.
"""

from __future__ import annotations

import json
import logging
import secrets
from typing import Annotated, Final

from fastapi import Depends, Request

from eventpass.core.errors import (
    AuthenticationError,
    AuthorizationError,
    CSRFViolation,
)
from eventpass.core.settings import Settings
from eventpass.schemas.session import Role, SessionIdentity
from eventpass.services.container import AppServices
from eventpass.services.rate_limit import admin_key, auth_key

logger = logging.getLogger(__name__)

SAFE_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD", "OPTIONS"})
CSRF_EXEMPT_PATHS: Final[frozenset[str]] = frozenset({"/healthz"})
CSRF_HEADER: Final[str] = "x-csrf-token"
SESSION_REQUIRED: Final[str] = "Invalid or expired session"


def get_services(request: Request) -> AppServices:
    """Return the service container attached at application startup."""
    services: AppServices = request.app.state.services
    return services


ServicesDep = Annotated[AppServices, Depends(get_services)]


def get_settings_dep(services: ServicesDep) -> Settings:
    return services.settings


SettingsDep = Annotated[Settings, Depends(get_settings_dep)]


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def verify_csrf(
    method: str,
    path: str,
    header_token: str | None,
    cookie_token: str | None,
) -> None:
    """Enforce the double-submit check for mutating requests.

    Raises:
        CSRFViolation: Header or cookie missing, or the two differ.
    """
    if method.upper() in SAFE_METHODS or path in CSRF_EXEMPT_PATHS:
        return
    if not header_token or not cookie_token:
        raise CSRFViolation("CSRF token missing")
    if not secrets.compare_digest(header_token.encode(), cookie_token.encode()):
        raise CSRFViolation("CSRF token mismatch")


def _check_request_csrf(request: Request, settings: Settings) -> None:
    verify_csrf(
        request.method,
        request.url.path,
        request.headers.get(CSRF_HEADER),
        request.cookies.get(settings.csrf_cookie_name),
    )


def csrf_protect(request: Request, settings: SettingsDep) -> None:
    """CSRF check for routes that do not resolve a session."""
    _check_request_csrf(request, settings)


class SessionGuard:
    """Resolve the session cookie, enforce a role, then check CSRF.

    Args:
        role: Required role, or None to accept any authenticated session.
        required: When False, missing or invalid sessions resolve to None.
        csrf: Whether to run the CSRF check after the session checks.
    """

    def __init__(self, role: Role | None = None, *, required: bool = True, csrf: bool = True):
        self.role = role
        self.required = required
        self.csrf = csrf

    def __call__(self, request: Request, services: ServicesDep) -> SessionIdentity | None:
        identity = self._resolve(request, services)
        if identity is None:
            if self.required:
                raise AuthenticationError(SESSION_REQUIRED)
        elif self.role is not None and identity.role != self.role:
            logger.info("Session %s lacks role %s", identity.session_id, self.role.value)
            raise AuthorizationError(f"{self.role.value.capitalize()} access required")

        if self.csrf:
            _check_request_csrf(request, services.settings)
        request.state.identity = identity
        return identity

    @staticmethod
    def _resolve(request: Request, services: AppServices) -> SessionIdentity | None:
        token = request.cookies.get(services.settings.session_cookie_name)
        if not token:
            return None
        try:
            claims = services.sessions.verify(token)
        except AuthenticationError:
            return None
        if not services.sessions.is_valid(claims.session_id):
            return None
        return SessionIdentity(
            wallet=claims.wallet,
            role=claims.role,
            session_id=claims.session_id,
            expires_at=claims.expires_at,
        )


require_session = SessionGuard()
require_admin = SessionGuard(Role.ADMIN)
optional_session = SessionGuard(required=False, csrf=False)

CurrentSessionDep = Annotated[SessionIdentity, Depends(require_session)]
CurrentAdminDep = Annotated[SessionIdentity, Depends(require_admin)]
OptionalSessionDep = Annotated[SessionIdentity | None, Depends(optional_session)]


async def _body_wallet(request: Request) -> str | None:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    wallet = body.get("wallet") if isinstance(body, dict) else None
    return wallet if isinstance(wallet, str) and wallet else None


async def auth_rate_limit(request: Request, services: ServicesDep) -> None:
    """Per client IP and wallet limit for login and challenge endpoints."""
    key = auth_key(client_ip(request), await _body_wallet(request))
    services.rate_limiter.check("auth", key)


def admin_rate_limit(request: Request, services: ServicesDep) -> None:
    """Per client IP limit for admin endpoints."""
    services.rate_limiter.check("admin", admin_key(client_ip(request)))


