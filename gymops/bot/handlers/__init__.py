from aiogram import Router

from . import (
    billing,
    expiry,
    report,
    start,
)


def setup_routers() -> Router:
    """
    Aggregate and return root router for the bot.
    """

    router = Router(name="root")
    router.include_router(start.router)
    router.include_router(billing.router)
    router.include_router(expiry.router)
    router.include_router(report.router)
    return router
