from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from gymops.core import get_settings
from gymops.core.logging import configure_logging


logger = configure_logging()


class AdminContextMiddleware(BaseMiddleware):
    """
    Middleware that marks whether the sender is a gym administrator.

    Identity is owned elsewhere; here we only compare the Telegram user id
    with the ADMIN_TELEGRAM_IDS allow-list. Handlers receive `is_admin`.
    """

    def __init__(self, admin_ids: frozenset[int] | None = None) -> None:
        self._admin_ids = admin_ids if admin_ids is not None else get_settings().admin_telegram_ids

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        from_user = None
        if isinstance(event, (Message, CallbackQuery)):
            from_user = event.from_user

        is_admin = from_user is not None and from_user.id in self._admin_ids
        if from_user is not None and not is_admin:
            logger.warning("Rejected admin command from Telegram user %s", from_user.id)

        data["is_admin"] = is_admin
        return await handler(event, data)
