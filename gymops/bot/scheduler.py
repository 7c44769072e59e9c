from __future__ import annotations

import logging
from datetime import datetime, timezone

from aiogram import Bot
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from gymops.bot.handlers.expiry import format_sweep_report
from gymops.core import get_settings
from gymops.engine import LifecycleService, SweepResult, get_lifecycle_service

logger = logging.getLogger(__name__)


class ExpirySweepScheduler:
    """
    APScheduler manager for the periodic expiry sweep.

    Each run demotes ended memberships and flags overdue bills, then posts a
    short report to the admin chat when something changed.
    """

    def __init__(
        self,
        bot: Bot | None,
        service: LifecycleService | None = None,
        *,
        admin_chat_id: int | None = None,
        interval_minutes: int | None = None,
    ) -> None:
        self.bot = bot
        self.service = service or get_lifecycle_service()
        if admin_chat_id is None or interval_minutes is None:
            settings = get_settings()
            admin_chat_id = admin_chat_id if admin_chat_id is not None else settings.admin_chat_id
            interval_minutes = interval_minutes or settings.sweep_interval_minutes
        self.admin_chat_id = admin_chat_id
        self.interval_minutes = interval_minutes
        self.scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        """
        Initialize and start the scheduler; the first sweep runs immediately.
        """
        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self.run_sweep,
            IntervalTrigger(minutes=self.interval_minutes),
            id="expiry_sweep",
            name="Membership Expiry Sweep",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )

        self.scheduler.start()
        logger.info("Expiry sweep scheduler started (every %d min)", self.interval_minutes)

    async def stop(self) -> None:
        """
        Stop the scheduler gracefully.
        """
        if self.scheduler:
            self.scheduler.shutdown()
            logger.info("Expiry sweep scheduler stopped")

    async def run_sweep(self) -> SweepResult | None:
        """
        One scheduled sweep. Failures are logged and the next run tries again.
        """
        try:
            result = await self.service.run_expiry_sweep()
        except Exception as exc:
            logger.exception("Expiry sweep failed: %s", exc)
            return None

        if result.changed and self.bot is not None and self.admin_chat_id is not None:
            try:
                await self.bot.send_message(
                    chat_id=self.admin_chat_id,
                    text=format_sweep_report(result),
                )
            except Exception as exc:
                logger.error("Failed to post sweep report to chat %s: %s", self.admin_chat_id, exc)

        return result


# Global scheduler instance
_scheduler: ExpirySweepScheduler | None = None


def get_sweep_scheduler(bot: Bot | None = None) -> ExpirySweepScheduler:
    """
    Get or create the global sweep scheduler.
    """
    global _scheduler
    if _scheduler is None:
        _scheduler = ExpirySweepScheduler(bot)
    return _scheduler
