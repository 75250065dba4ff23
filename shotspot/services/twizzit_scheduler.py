"""
Twizzit auto-sync scheduler.

Background worker that wakes up every minute and runs the configured syncs
for every sync config with auto-sync enabled whose next_sync_at has passed.
"""

import asyncio
import logging
import os
from typing import Optional

from shotspot.database import db
from shotspot.services import twizzit_service

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = int(os.getenv("TWIZZIT_SCHEDULER_POLL_SECONDS", "60"))


class TwizzitSyncScheduler:
    """Background service that runs due Twizzit syncs."""

    def __init__(self):
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Twizzit sync scheduler started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Twizzit sync scheduler stopped")

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_due_syncs()
            except Exception as e:
                logger.error(f"Error in Twizzit sync scheduler: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=POLL_INTERVAL_SECONDS)
                break
            except asyncio.TimeoutError:
                pass

    async def run_due_syncs(self) -> int:
        """Run every due sync config once. Returns how many were attempted."""
        async with db.AsyncSessionLocal() as session:
            configs = await twizzit_service.due_sync_configs(session)
            if not configs:
                return 0

            logger.info(f"Running {len(configs)} due Twizzit sync(s)")
            for config in configs:
                credential_id = config.credential_id
                try:
                    await twizzit_service.run_auto_sync(session, config)
                except ValueError as e:
                    logger.warning(f"Auto-sync for credential {credential_id} failed: {e}")
                except Exception as e:
                    logger.error(f"Auto-sync for credential {credential_id} crashed: {e}", exc_info=True)
                    await session.rollback()
            return len(configs)


_scheduler = TwizzitSyncScheduler()


def get_twizzit_scheduler() -> TwizzitSyncScheduler:
    return _scheduler
