"""Deadline scan worker.

Periodically records deadline warnings and overdue notices for task
assignees. Each pass runs in its own session/transaction.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from stageflow.core.config import settings
from stageflow.core.logging_config import configure_logging
from stageflow.db.session import get_async_session_context
from stageflow.errors import PersistenceError
from stageflow.services.deadline_scanner import DeadlineScanService

logger = logging.getLogger(__name__)


class DeadlineScanRunner:
    """Run DeadlineScanService on a fixed interval."""

    def __init__(self, poll_interval: Optional[float] = None) -> None:
        self.poll_interval = poll_interval or settings.DEADLINE_SCAN_INTERVAL_SECONDS
        self._stop_event = asyncio.Event()

    def request_stop(self) -> None:
        self._stop_event.set()

    async def run_once(self) -> int:
        """One scan pass. Returns the number of notifications recorded."""
        async with get_async_session_context() as session:
            emitted = await DeadlineScanService(session).scan()
        logger.info("Deadline scan finished: %s notification(s)", emitted)
        return emitted

    async def run_forever(self) -> None:
        """Scan until stopped, waiting poll_interval between passes."""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except (PersistenceError, SQLAlchemyError, OSError):
                # A failed pass is retried on the next tick
                logger.exception("Deadline scan pass failed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue


def main() -> None:
    parser = argparse.ArgumentParser(description="Record deadline notifications for open tasks")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between passes")
    args = parser.parse_args()

    configure_logging()
    runner = DeadlineScanRunner(poll_interval=args.interval)
    if args.once:
        asyncio.run(runner.run_once())
    else:
        asyncio.run(runner.run_forever())


if __name__ == "__main__":
    main()
