"""Periodic sweep of expired sessions, challenges and rate-limit windows."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from eventpass.services.challenges import ChallengeIssuer
from eventpass.services.rate_limit import RateLimiter
from eventpass.services.sessions import SessionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupReport:
    sessions: int
    challenges: int
    rate_limit_windows: int


class SessionCleanupWorker:
    """Runs :meth:`run_once` every ``interval`` seconds until stopped.

    The worker is owned by the application lifecycle: ``start`` on startup,
    ``stop`` on shutdown. Stopping wakes the loop immediately and waits for it
    to finish, so no task outlives the app.
    """

    def __init__(
        self,
        sessions: SessionManager,
        challenges: ChallengeIssuer,
        rate_limiter: RateLimiter,
        interval: float = 300.0,
    ) -> None:
        self._sessions = sessions
        self._challenges = challenges
        self._rate_limiter = rate_limiter
        self.interval = max(0.01, float(interval))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping = asyncio.Event()
            self._task = asyncio.create_task(self._run())
            logger.info("Session cleanup worker started (every %.0fs)", self.interval)

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("Session cleanup worker stopped")

    def run_once(self) -> CleanupReport:
        """Run one synchronous sweep."""
        report = CleanupReport(
            sessions=self._sessions.cleanup_expired(),
            challenges=self._challenges.cleanup_expired(),
            rate_limit_windows=self._rate_limiter.prune(),
        )
        if report.sessions or report.challenges:
            logger.info(
                "Cleanup removed %d sessions and %d challenges",
                report.sessions,
                report.challenges,
            )
        return report

    async def _run(self) -> None:
        while not self._stopping.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            if self._stopping.is_set():
                return
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("Session cleanup sweep failed")
