# src/eventpass/api/v1/endpoints/admin.py
"""Admin login and session maintenance endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from eventpass.api.v1.cookies import clear_session_cookie, set_session_cookie
from eventpass.api.v1.dependencies import (
    CurrentAdminDep,
    ServicesDep,
    admin_rate_limit,
    auth_rate_limit,
    csrf_protect,
)
from eventpass.schemas.activity import ActivityType
from eventpass.schemas.auth import (
    ActivityData,
    ActivityListData,
    CleanupData,
    InvalidateWalletData,
    InvalidateWalletRequest,
    LoginData,
    NonceData,
    PasswordLoginRequest,
    SessionData,
    SessionListData,
    SessionStatsData,
    SiweRequest,
)
from eventpass.schemas.common import WALLET_REGEX, ApiResponse, MessageData, WalletRequest
from eventpass.schemas.session import Role, SessionRecord
from eventpass.services.auth import PasswordLogin, WalletSignatureLogin
from eventpass.services.container import AppServices

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(admin_rate_limit)],
)

LOGIN_GUARDS = [Depends(auth_rate_limit), Depends(csrf_protect)]


def _open_admin_session(
    services: AppServices,
    response: Response,
    token: str,
    record: SessionRecord,
    method: str,
) -> ApiResponse[LoginData]:
    set_session_cookie(response, token, services.settings)
    services.activity.record(ActivityType.ADMIN_LOGIN, record.wallet, {"method": method})
    return ApiResponse(
        data=LoginData(message="Admin session created", session=SessionData.from_record(record))
    )


@router.post("/login/password", response_model=ApiResponse[LoginData], dependencies=LOGIN_GUARDS)
def login_with_password(
    payload: PasswordLoginRequest,
    response: Response,
    services: ServicesDep,
) -> ApiResponse[LoginData]:
    token, record = services.auth.login(PasswordLogin(payload.email, payload.password))
    return _open_admin_session(services, response, token, record, "password")


@router.post(
    "/login/wallet/nonce",
    response_model=ApiResponse[NonceData],
    dependencies=LOGIN_GUARDS,
)
def create_admin_nonce(payload: WalletRequest, services: ServicesDep) -> ApiResponse[NonceData]:
    """Issue an admin sign challenge; only the configured admin wallet may ask."""
    challenge = services.auth.issue_sign_challenge(payload.wallet, Role.ADMIN)
    return ApiResponse(
        data=NonceData(
            nonce=challenge.nonce,
            message=challenge.message,
            expires_at=challenge.expires_at,
        )
    )


@router.post(
    "/login/wallet/siwe",
    response_model=ApiResponse[LoginData],
    dependencies=LOGIN_GUARDS,
)
def login_with_wallet(
    payload: SiweRequest,
    response: Response,
    services: ServicesDep,
) -> ApiResponse[LoginData]:
    token, record = services.auth.login(
        WalletSignatureLogin(
            wallet=payload.wallet,
            message=payload.message,
            signature=payload.signature,
            role=Role.ADMIN,
        )
    )
    return _open_admin_session(services, response, token, record, "wallet")


@router.post("/logout", response_model=ApiResponse[MessageData])
def logout_admin(
    admin: CurrentAdminDep,
    response: Response,
    services: ServicesDep,
) -> ApiResponse[MessageData]:
    services.sessions.invalidate(admin.session_id)
    services.activity.record(ActivityType.ADMIN_LOGOUT, admin.wallet)
    clear_session_cookie(response, services.settings)
    return ApiResponse(data=MessageData(message="Logged out successfully"))


@router.post("/sessions/cleanup", response_model=ApiResponse[CleanupData])
def cleanup_sessions(admin: CurrentAdminDep, services: ServicesDep) -> ApiResponse[CleanupData]:
    """Run an immediate expiry sweep."""
    removed = services.sessions.cleanup_expired()
    swept = services.challenges.cleanup_expired()
    services.activity.record(
        ActivityType.SESSIONS_CLEANUP,
        admin.wallet,
        {"removed": removed, "challenges_swept": swept},
    )
    return ApiResponse(data=CleanupData(removed=removed, challenges_swept=swept))


@router.post("/sessions/invalidate-wallet", response_model=ApiResponse[InvalidateWalletData])
def invalidate_wallet_sessions(
    payload: InvalidateWalletRequest,
    admin: CurrentAdminDep,
    services: ServicesDep,
) -> ApiResponse[InvalidateWalletData]:
    """Revoke every session held by a wallet."""
    removed = services.sessions.invalidate_all_for_wallet(payload.wallet)
    services.activity.record(
        ActivityType.SESSIONS_INVALIDATED,
        admin.wallet,
        {"target_wallet": payload.wallet.lower(), "removed": removed},
    )
    return ApiResponse(data=InvalidateWalletData(wallet=payload.wallet, removed=removed))


@router.get("/sessions/stats", response_model=ApiResponse[SessionStatsData])
def read_session_stats(
    admin: CurrentAdminDep,
    services: ServicesDep,
) -> ApiResponse[SessionStatsData]:
    stats = services.sessions.stats()
    return ApiResponse(data=SessionStatsData(**stats.model_dump()))


@router.get("/sessions", response_model=ApiResponse[SessionListData])
def list_active_sessions(
    admin: CurrentAdminDep,
    services: ServicesDep,
    wallet: Annotated[str | None, Query(pattern=WALLET_REGEX)] = None,
) -> ApiResponse[SessionListData]:
    records = services.sessions.active_sessions(wallet)
    return ApiResponse(
        data=SessionListData(sessions=[SessionData.from_record(r) for r in records])
    )


@router.get("/activities", response_model=ApiResponse[ActivityListData])
def list_activities(
    admin: CurrentAdminDep,
    services: ServicesDep,
    activity_type: Annotated[ActivityType | None, Query(alias="type")] = None,
    wallet: Annotated[str | None, Query(pattern=WALLET_REGEX)] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> ApiResponse[ActivityListData]:
    """Audit trail, newest first, optionally filtered by type and wallet."""
    if wallet is not None:
        activities = services.activity.by_wallet(wallet, services.settings.activity_log_size)
        if activity_type is not None:
            activities = [a for a in activities if a.type == activity_type]
        activities = activities[:limit]
    elif activity_type is not None:
        activities = services.activity.by_type(activity_type, limit)
    else:
        activities = services.activity.recent(limit)
    return ApiResponse(
        data=ActivityListData(activities=[ActivityData.from_activity(a) for a in activities])
    )
