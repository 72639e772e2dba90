"""Bounded audit trail of admin actions."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Final

from eventpass.core.security import normalize_wallet
from eventpass.db.store import DocumentStore
from eventpass.db.time import Clock, utcnow
from eventpass.schemas.activity import Activity, ActivityType

logger = logging.getLogger(__name__)

ACTIVITIES_KEY: Final[str] = "activities"
DEFAULT_LIMIT: Final[int] = 50

_DESCRIPTIONS: Final[dict[ActivityType, str]] = {
    ActivityType.REGISTRATION_CREATED: "Registration created",
    ActivityType.REGISTRATION_UPDATED: "Registration updated",
    ActivityType.REGISTRATION_DELETED: "Registration deleted",
    ActivityType.CHECKIN: "Attendee checked in",
    ActivityType.CHECKOUT: "Attendee checked out",
    ActivityType.ADMIN_LOGIN: "Admin logged in",
    ActivityType.ADMIN_LOGOUT: "Admin logged out",
    ActivityType.SESSIONS_CLEANUP: "Expired sessions cleaned up",
    ActivityType.SESSIONS_INVALIDATED: "Wallet sessions invalidated",
}


class ActivityRecorder:
    """Append-only log capped at ``max_entries``; the oldest entries fall off."""

    def __init__(self, store: DocumentStore, clock: Clock = utcnow, max_entries: int = 100) -> None:
        self._store = store
        self._clock = clock
        self._max_entries = max_entries

    def record(
        self,
        activity_type: ActivityType,
        admin_wallet: str,
        details: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> Activity:
        activity = Activity(
            id=f"activity_{uuid.uuid4().hex}",
            type=activity_type,
            description=description or _DESCRIPTIONS[activity_type],
            admin_wallet=normalize_wallet(admin_wallet),
            details=details or {},
            timestamp=self._clock(),
        )
        with self._store.transaction(ACTIVITIES_KEY, list) as activities:
            activities.append(activity.model_dump(mode="json"))
            del activities[: max(len(activities) - self._max_entries, 0)]
        logger.info("Recorded %s by %s", activity_type.value, activity.admin_wallet)
        return activity

    def recent(self, limit: int = DEFAULT_LIMIT) -> list[Activity]:
        return self._newest_first(lambda _: True, limit)

    def by_type(self, activity_type: ActivityType, limit: int = DEFAULT_LIMIT) -> list[Activity]:
        return self._newest_first(lambda activity: activity.type == activity_type, limit)

    def by_wallet(self, wallet: str, limit: int = DEFAULT_LIMIT) -> list[Activity]:
        """Return entries where ``wallet`` acted or was the target."""
        wanted = normalize_wallet(wallet)

        def involves(activity: Activity) -> bool:
            target = activity.target_wallet
            return activity.admin_wallet == wanted or (
                target is not None and normalize_wallet(target) == wanted
            )

        return self._newest_first(involves, limit)

    def clear_older_than(self, days: int) -> int:
        """Drop entries older than ``days`` and return how many went."""
        cutoff = self._clock() - timedelta(days=days)
        with self._store.transaction(ACTIVITIES_KEY, list) as activities:
            kept = [raw for raw in activities if Activity.model_validate(raw).timestamp >= cutoff]
            removed = len(activities) - len(kept)
            activities[:] = kept
        return removed

    def _newest_first(
        self, predicate: Callable[[Activity], bool], limit: int
    ) -> list[Activity]:
        if limit <= 0:
            return []
        matches: list[Activity] = []
        for raw in reversed(self._store.get(ACTIVITIES_KEY, [])):
            activity = Activity.model_validate(raw)
            if predicate(activity):
                matches.append(activity)
                if len(matches) >= limit:
                    break
        return matches
