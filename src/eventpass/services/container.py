"""Wiring of the service graph held on ``app.state``."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from eventpass.core.settings import Settings
from eventpass.db.store import DocumentStore
from eventpass.db.time import Clock, utcnow
from eventpass.services.activity import ActivityRecorder
from eventpass.services.auth import AuthService
from eventpass.services.challenges import ChallengeIssuer
from eventpass.services.cleanup import SessionCleanupWorker
from eventpass.services.credentials import CredentialStore
from eventpass.services.deposits import DepositVerifier, get_deposit_verifier
from eventpass.services.rate_limit import RateLimiter, policies_from_settings
from eventpass.services.sessions import SessionManager


@dataclass
class AppServices:
    settings: Settings
    store: DocumentStore
    sessions: SessionManager
    challenges: ChallengeIssuer
    credentials: CredentialStore
    auth: AuthService
    activity: ActivityRecorder
    rate_limiter: RateLimiter
    cleanup_worker: SessionCleanupWorker


def build_services(
    settings: Settings,
    session_factory: sessionmaker[Session],
    *,
    clock: Clock = utcnow,
    deposit_verifier: DepositVerifier | None = None,
) -> AppServices:
    """Construct every service against one store, clock and settings object."""
    store = DocumentStore(session_factory)
    sessions = SessionManager(store, settings, clock)
    challenges = ChallengeIssuer(
        store,
        settings,
        clock,
        deposit_verifier or get_deposit_verifier(settings.deposit_verification_mode),
    )
    credentials = CredentialStore(store, settings.admin_wallet)
    rate_limiter = RateLimiter(
        policies_from_settings(settings),
        clock=clock,
        redis_url=settings.redis_url,
    )
    return AppServices(
        settings=settings,
        store=store,
        sessions=sessions,
        challenges=challenges,
        credentials=credentials,
        auth=AuthService(sessions, challenges, credentials),
        activity=ActivityRecorder(store, clock, settings.activity_log_size),
        rate_limiter=rate_limiter,
        cleanup_worker=SessionCleanupWorker(
            sessions,
            challenges,
            rate_limiter,
            interval=settings.cleanup_interval_seconds,
        ),
    )
