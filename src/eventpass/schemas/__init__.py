"""
Pydantic schemas for stored records and API request/response models.
"""

from .activity import Activity, ActivityType
from .challenge import ChallengeStatus, ParsedSignMessage, SignChallenge, ValueChallenge
from .common import ApiModel, ApiResponse, MessageData, WalletRequest
from .credential import AdminCredential
from .session import Role, SessionClaims, SessionIdentity, SessionRecord, SessionStats

__all__ = [
    "Activity", "ActivityType",
    "AdminCredential",
    "ApiModel", "ApiResponse", "MessageData", "WalletRequest",
    "ChallengeStatus", "ParsedSignMessage", "SignChallenge", "ValueChallenge",
    "Role", "SessionClaims", "SessionIdentity", "SessionRecord", "SessionStats",
]
