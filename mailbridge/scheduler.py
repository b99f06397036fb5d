"""
Expired Token Sweep Scheduler.

Background task that periodically deletes expired credentials. Purely
storage hygiene: an expired record is already ignored by the validity check.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .database import TokenRepository


logger = logging.getLogger(__name__)


class TokenSweepScheduler:
    """
    Background scheduler for expired-token cleanup.

    Runs TokenRepository.sweep_expired every `interval_minutes`.
    """

    def __init__(self, store: "TokenRepository", interval_minutes: int = 60):
        self.store = store
        self._task: asyncio.Task | None = None
        self._running = False
        self._interval_minutes = interval_minutes

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the sweep loop."""
        if self._interval_minutes <= 0:
            logger.info("Token sweep interval disabled, scheduler not started")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Token sweep scheduler started (interval: {self._interval_minutes} minutes)")

    async def stop(self):
        """Stop the sweep loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Token sweep scheduler stopped")

    def sweep_now(self) -> int:
        """Run one sweep immediately. Returns the number of records removed."""
        removed = self.store.sweep_expired()
        if removed:
            logger.info(f"Removed {removed} expired token(s)")
        else:
            logger.debug("Token sweep: nothing expired")
        return removed

    async def _sweep_loop(self):
        """Main sweep loop."""
        while self._running:
            await asyncio.sleep(self._interval_minutes * 60)
            try:
                self.sweep_now()
            except Exception as e:
                logger.exception(f"Error in token sweep loop: {e}")
