# src/eventpass/scripts/maintenance.py
"""
Cron job for store housekeeping.

Run periodically (for example daily) to:
1. Remove expired sessions
2. Drop expired sign challenges and mark stale value challenges expired
3. Trim audit entries older than ``--activity-days``

The API process sweeps sessions and challenges on its own; this script covers
deployments where the API is scaled to zero or the sweep is disabled.
"""

from __future__ import annotations

import argparse
import sys

from eventpass.core.settings import Settings, get_settings
from eventpass.db.session import build_engine, build_session_factory, create_tables
from eventpass.db.store import StoreError
from eventpass.services.container import build_services

DEFAULT_ACTIVITY_DAYS = 30


def run_maintenance(settings: Settings, activity_days: int) -> dict[str, int]:
    """Run every housekeeping step once and return per-step counts."""
    engine = build_engine(settings)
    create_tables(engine)
    services = build_services(settings, build_session_factory(engine))
    return {
        "sessions": services.sessions.cleanup_expired(),
        "challenges": services.challenges.cleanup_expired(),
        "activities": services.activity.clear_older_than(activity_days),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sweep expired sessions and challenges")
    parser.add_argument(
        "--activity-days",
        type=int,
        default=DEFAULT_ACTIVITY_DAYS,
        help="Delete audit entries older than this many days.",
    )
    args = parser.parse_args(argv)

    try:
        counts = run_maintenance(get_settings(), args.activity_days)
    except StoreError as exc:
        print(f"[maintenance] ERROR: {exc}", file=sys.stderr)
        return 1

    print(
        f"[maintenance] removed {counts['sessions']} sessions, "
        f"{counts['challenges']} challenges, {counts['activities']} activities"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
