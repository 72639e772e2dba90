# src/eventpass/api/v1/endpoints/session.py
"""Wallet session endpoints: CSRF bootstrap, sign-in, challenges, logout."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response

from eventpass.api.v1.cookies import clear_session_cookie, set_csrf_cookie, set_session_cookie
from eventpass.api.v1.dependencies import (
    CurrentSessionDep,
    OptionalSessionDep,
    ServicesDep,
    auth_rate_limit,
    csrf_protect,
)
from eventpass.core.security import generate_csrf_token
from eventpass.schemas.auth import (
    ChallengeCreatedData,
    ChallengeVerifyRequest,
    CsrfTokenData,
    LoginData,
    NonceData,
    SessionData,
    SessionStatusData,
    SiweRequest,
)
from eventpass.schemas.common import ApiResponse, MessageData, WalletRequest
from eventpass.schemas.session import Role
from eventpass.services.auth import ValueChallengeLogin, WalletSignatureLogin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])

LOGIN_GUARDS = [Depends(auth_rate_limit), Depends(csrf_protect)]


@router.get("/csrf-token", response_model=ApiResponse[CsrfTokenData])
async def get_csrf_token(response: Response, services: ServicesDep) -> ApiResponse[CsrfTokenData]:
    """Issue a fresh CSRF token in both a cookie and the body."""
    token = generate_csrf_token()
    set_csrf_cookie(response, token, services.settings)
    return ApiResponse(data=CsrfTokenData(token=token))


@router.post("/nonce", response_model=ApiResponse[NonceData], dependencies=LOGIN_GUARDS)
def create_nonce(payload: WalletRequest, services: ServicesDep) -> ApiResponse[NonceData]:
    """Create a sign challenge for the wallet to sign."""
    challenge = services.auth.issue_sign_challenge(payload.wallet, Role.USER)
    return ApiResponse(
        data=NonceData(
            nonce=challenge.nonce,
            message=challenge.message,
            expires_at=challenge.expires_at,
        )
    )


@router.post("/siwe", response_model=ApiResponse[LoginData], dependencies=LOGIN_GUARDS)
def sign_in_with_wallet(
    payload: SiweRequest,
    response: Response,
    services: ServicesDep,
) -> ApiResponse[LoginData]:
    """Exchange a signed sign challenge for a user session."""
    token, record = services.auth.login(
        WalletSignatureLogin(
            wallet=payload.wallet,
            message=payload.message,
            signature=payload.signature,
            role=Role.USER,
        )
    )
    set_session_cookie(response, token, services.settings)
    return ApiResponse(
        data=LoginData(message="Session created", session=SessionData.from_record(record))
    )


@router.post(
    "/challenge/create",
    response_model=ApiResponse[ChallengeCreatedData],
    dependencies=LOGIN_GUARDS,
)
def create_value_challenge(
    payload: WalletRequest,
    services: ServicesDep,
) -> ApiResponse[ChallengeCreatedData]:
    """Start a deposit proof for the wallet."""
    challenge = services.challenges.create_value_challenge(payload.wallet)
    return ApiResponse(
        data=ChallengeCreatedData(
            challenge_id=challenge.id,
            amount=challenge.amount,
            deposit_address=challenge.deposit_address,
            expires_at=challenge.expires_at,
        )
    )


@router.post(
    "/challenge/verify",
    response_model=ApiResponse[LoginData],
    dependencies=LOGIN_GUARDS,
)
def verify_value_challenge(
    payload: ChallengeVerifyRequest,
    response: Response,
    services: ServicesDep,
) -> ApiResponse[LoginData]:
    """Verify a deposit proof and open a user session."""
    token, record = services.auth.login(ValueChallengeLogin(challenge_id=str(payload.challenge_id)))
    set_session_cookie(response, token, services.settings)
    return ApiResponse(
        data=LoginData(
            message="Challenge verified and session created",
            session=SessionData.from_record(record),
        )
    )


@router.get("/me", response_model=ApiResponse[SessionData])
async def read_current_session(identity: CurrentSessionDep) -> ApiResponse[SessionData]:
    return ApiResponse(
        data=SessionData(
            wallet=identity.wallet,
            role=identity.role,
            session_id=identity.session_id,
            expires_at=identity.expires_at,
        )
    )


@router.get("/status", response_model=ApiResponse[SessionStatusData])
async def read_session_status(identity: OptionalSessionDep) -> ApiResponse[SessionStatusData]:
    """Report whether the caller holds a live session, without failing if not."""
    if identity is None:
        return ApiResponse(data=SessionStatusData(authenticated=False))
    return ApiResponse(
        data=SessionStatusData(
            authenticated=True,
            wallet=identity.wallet,
            role=identity.role,
            expires_at=identity.expires_at,
        )
    )


@router.post("/logout", response_model=ApiResponse[MessageData])
def logout(
    identity: CurrentSessionDep,
    response: Response,
    services: ServicesDep,
) -> ApiResponse[MessageData]:
    services.sessions.invalidate(identity.session_id)
    clear_session_cookie(response, services.settings)
    return ApiResponse(data=MessageData(message="Logged out successfully"))
