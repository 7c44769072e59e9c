from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from gymops.core import get_settings

router = Router(name="start")

HELP_LINES = [
    "<b>Membership &amp; billing commands</b>",
    "",
    "/assign <code>member_id</code> <code>package_id</code>: attach a fee package and raise its bill",
    "/charge <code>member_id</code> <code>amount</code> [description]: bill a supplement or other item",
    "/paid <code>bill_id</code>: record payment; membership bills activate the member",
    "/sweep: expire ended memberships and flag overdue bills now",
    "/expiring: members whose membership ends soon",
    "/stats: member counts, bills and revenue",
]


@router.message(CommandStart())
async def cmd_start(message: Message, is_admin: bool = False) -> None:
    """
    /start: greet administrators, turn everyone else away.
    """

    if not is_admin:
        await message.answer(
            "👋 This bot is for gym staff. Ask an administrator to add your Telegram id "
            f"(<code>{message.from_user.id}</code>) to the admin list."
        )
        return

    settings = get_settings()
    lines = ["👋 Welcome back!", ""]
    if settings.is_debug:
        lines.append("Mode: <b>DEBUG</b>")
        lines.append("")
    lines.extend(HELP_LINES)
    await message.answer("\n".join(lines))


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer("\n".join(HELP_LINES))
