# src/eventpass/services/__init__.py
"""Business logic services for the EventPass session subsystem."""

from .activity import ActivityRecorder
from .auth import AuthService, PasswordLogin, ValueChallengeLogin, WalletSignatureLogin
from .challenges import ChallengeIssuer
from .cleanup import SessionCleanupWorker
from .container import AppServices, build_services
from .credentials import CredentialStore
from .rate_limit import RateLimiter
from .sessions import SessionManager

__all__ = [
    "ActivityRecorder",
    "AppServices",
    "AuthService",
    "ChallengeIssuer",
    "CredentialStore",
    "PasswordLogin",
    "RateLimiter",
    "SessionCleanupWorker",
    "SessionManager",
    "ValueChallengeLogin",
    "WalletSignatureLogin",
    "build_services",
]
