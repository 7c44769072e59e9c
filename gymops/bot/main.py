from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from gymops.bot.handlers import setup_routers
from gymops.bot.middlewares import AdminContextMiddleware
from gymops.bot.scheduler import get_sweep_scheduler
from gymops.core import get_settings
from gymops.core.logging import configure_logging
from gymops.db import get_supabase_client
from gymops.engine import get_lifecycle_service


async def _run_bot() -> None:
    settings = get_settings()
    logger = configure_logging()

    if not settings.bot_token:
        raise RuntimeError("Missing required environment variable: BOT_TOKEN")
    if not settings.admin_telegram_ids:
        logger.warning("ADMIN_TELEGRAM_IDS is empty; every command will be refused")

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher(storage=MemoryStorage())
    dp.message.middleware(AdminContextMiddleware())
    dp.callback_query.middleware(AdminContextMiddleware())
    dp.include_router(setup_routers())

    logger.info("Starting bot in %s environment", settings.environment)

    # Periodic expiry sweep; also reports to the admin chat
    scheduler = get_sweep_scheduler(bot)
    await scheduler.start()

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        # Graceful shutdown
        await scheduler.stop()
        await get_supabase_client().close()
        await bot.session.close()


async def _run_sweep_once() -> None:
    logger = configure_logging()
    try:
        result = await get_lifecycle_service().run_expiry_sweep()
        logger.info(
            "Sweep done: %d member(s) expired, %d bill(s) overdue",
            len(result.expired_members),
            len(result.overdue_bills),
        )
    finally:
        await get_supabase_client().close()


def main() -> None:
    asyncio.run(_run_bot())


def sweep() -> None:
    """Entry point for cron-style deployments that run the sweep without the bot."""
    asyncio.run(_run_sweep_once())


if __name__ == "__main__":
    main()
