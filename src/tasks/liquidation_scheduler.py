"""
Liquidation Scheduler

Runs the liquidation sweep on a fixed interval with APScheduler. At most one
sweep runs at a time; missed runs are coalesced into one.
"""
from datetime import datetime, UTC
from typing import Optional

from loguru import logger
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.config import LIQUIDATION_INTERVAL_SECONDS
from src.core.exceptions import TradingError
from src.services.liquidation import LiquidationScanner, ScanSummary


class LiquidationScheduler:
    """
    Scheduler for the periodic bust sweep.

    Jobs:
    - liquidation_sweep: every LIQUIDATION_INTERVAL_SECONDS
    """

    JOB_ID = "liquidation_sweep"

    def __init__(
        self,
        scanner: LiquidationScanner,
        interval_seconds: int = LIQUIDATION_INTERVAL_SECONDS,
    ):
        self.scanner = scanner
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self.last_run: Optional[datetime] = None
        self.last_summary: Optional[ScanSummary] = None
        self.last_error: Optional[str] = None

    def start(self):
        """Start the scheduler (requires a running event loop)."""
        if self._running:
            logger.warning("Liquidation scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._run_sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            name="Liquidation Sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        self.scheduler.start()
        self._running = True

        logger.info(f"Liquidation scheduler started: sweep every {self.interval_seconds}s")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Liquidation scheduler stopped")

    async def trigger_now(self) -> Optional[ScanSummary]:
        """
        Run one sweep immediately.

        Returns:
            Sweep summary, or None if the sweep failed
        """
        logger.info("Manual liquidation sweep triggered")
        return await self._run_sweep()

    async def _run_sweep(self) -> Optional[ScanSummary]:
        self.last_run = datetime.now(UTC)
        try:
            summary = await self.scanner.scan()
        except TradingError as e:
            self.last_error = e.message
            logger.error(f"Liquidation sweep failed: {e.message}")
            return None
        except Exception as e:
            self.last_error = str(e)
            logger.exception(f"Liquidation sweep crashed: {e}")
            return None

        self.last_summary = summary
        self.last_error = None
        return summary

    def get_status(self) -> dict:
        """Scheduler status."""
        status = {
            "running": bool(self.scheduler and self._running),
            "interval_seconds": self.interval_seconds,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_summary": self.last_summary.to_dict() if self.last_summary else None,
            "last_error": self.last_error,
            "jobs": [],
        }
        if not status["running"]:
            return status

        for job in self.scheduler.get_jobs():
            status["jobs"].append({
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            })
        return status
