from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message
from aiogram.utils.text_decorations import html_decoration

from gymops.bot.handlers.billing import NOT_ADMIN_TEXT
from gymops.core.logging import configure_logging
from gymops.db import SupabaseError
from gymops.engine import SweepResult, get_lifecycle_service
from gymops.engine.notifications import ExpiringSoonNotice

router = Router(name="expiry")
logger = configure_logging()

MAX_LISTED = 20


def format_sweep_report(result: SweepResult) -> str:
    if not result.changed:
        return "🧹 Sweep finished: no memberships expired and no bills became overdue."

    lines = ["🧹 <b>Sweep finished</b>", ""]
    if result.expired_members:
        lines.append(f"Memberships expired: <b>{len(result.expired_members)}</b>")
        for member in result.expired_members[:MAX_LISTED]:
            label = member.membership_number or member.id
            lines.append(f"  • {label} (ended {member.membership_end_date:%d %b %Y})")
    if result.overdue_bills:
        lines.append(f"Bills now overdue: <b>{len(result.overdue_bills)}</b>")
        for bill in result.overdue_bills[:MAX_LISTED]:
            lines.append(f"  • <code>{bill.id}</code> (due {bill.due_date:%d %b %Y})")
    return "\n".join(lines)


def format_expiring_report(notices: list[ExpiringSoonNotice]) -> str:
    if not notices:
        return "No memberships expire in the coming days."

    lines = [f"⏰ <b>Memberships Expiring Soon ({len(notices)})</b>", ""]
    for notice in notices[:MAX_LISTED]:
        label = notice.member.membership_number or notice.member.id
        when = "expires today" if notice.days_left == 0 else f"{notice.days_left} day(s) left"
        package = f" ({html_decoration.quote(notice.package_name)})" if notice.package_name else ""
        lines.append(f"  • {label}{package}: {when}")
    if len(notices) > MAX_LISTED:
        lines.append(f"And {len(notices) - MAX_LISTED} more members...")
    return "\n".join(lines)


@router.message(Command("sweep"))
async def cmd_sweep(message: Message, is_admin: bool = False) -> None:
    """
    Run the expiry sweep now instead of waiting for the scheduled run.
    """

    if not is_admin:
        await message.answer(NOT_ADMIN_TEXT)
        return

    try:
        result = await get_lifecycle_service().run_expiry_sweep()
    except SupabaseError as exc:
        logger.exception("Supabase error during /sweep: %s", exc)
        await message.answer("❌ Sweep failed: could not reach the database.")
        return

    await message.answer(format_sweep_report(result))


@router.message(Command("expiring"))
async def cmd_expiring(message: Message, is_admin: bool = False) -> None:
    """
    Show members whose membership ends within the reminder window.
    """

    if not is_admin:
        await message.answer(NOT_ADMIN_TEXT)
        return

    try:
        notices = await get_lifecycle_service().list_expiring_soon()
    except SupabaseError as exc:
        logger.exception("Supabase error during /expiring: %s", exc)
        await message.answer("❌ Could not reach the database. Try again later.")
        return

    await message.answer(format_expiring_report(notices))
