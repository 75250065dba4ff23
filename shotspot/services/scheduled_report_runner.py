"""
Scheduled report runner.

Polls every five minutes for active scheduled reports whose next_run_at has
passed, generates each one as a report export and emails it when the report
asks for it.
"""

import asyncio
import logging
import os
from typing import Optional

from shotspot.database import db
from shotspot.services import report_service

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = int(os.getenv("REPORT_RUNNER_POLL_SECONDS", "300"))


class ScheduledReportRunner:
    """Background service that runs due scheduled reports."""

    def __init__(self):
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Scheduled report runner started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Scheduled report runner stopped")

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_due_reports()
            except Exception as e:
                logger.error(f"Error in scheduled report runner: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=POLL_INTERVAL_SECONDS)
                break
            except asyncio.TimeoutError:
                pass

    async def run_due_reports(self) -> int:
        """Run every due report once. Returns how many succeeded."""
        async with db.AsyncSessionLocal() as session:
            reports = await report_service.due_reports(session)
            if not reports:
                return 0

            logger.info(f"Found {len(reports)} scheduled report(s) due")
            succeeded = 0
            for report in reports:
                report_id = report.id
                try:
                    await report_service.run_scheduled_report(session, report)
                    succeeded += 1
                except ValueError as e:
                    # Unrunnable report: push it back so it is not retried every poll
                    await session.rollback()
                    await report_service.defer_report(session, report_id, str(e))
                except Exception as e:
                    logger.error(f"Error running scheduled report {report_id}: {e}", exc_info=True)
                    await session.rollback()
            return succeeded


_runner = ScheduledReportRunner()


def get_scheduled_report_runner() -> ScheduledReportRunner:
    return _runner
