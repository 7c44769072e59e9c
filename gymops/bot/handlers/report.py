from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from gymops.bot.handlers.billing import NOT_ADMIN_TEXT
from gymops.core import get_settings
from gymops.core.logging import configure_logging
from gymops.db import SupabaseError
from gymops.db.models import BillStatus, MemberStatus
from gymops.engine import LedgerStats, get_lifecycle_service
from gymops.engine.notifications import format_money

router = Router(name="report")
logger = configure_logging()


def format_stats_report(stats: LedgerStats, currency: str) -> str:
    members, bills = stats.members, stats.bills

    lines: list[str] = [
        "📊 <b>Gym statistics</b>",
        "",
        f"Members: <b>{stats.total_members}</b>",
        f"Active: <b>{members[MemberStatus.ACTIVE]}</b>",
        f"Inactive: <b>{members[MemberStatus.INACTIVE]}</b>",
        f"Expired: <b>{members[MemberStatus.EXPIRED]}</b>",
    ]
    if members[MemberStatus.SUSPENDED]:
        lines.append(f"Suspended: <b>{members[MemberStatus.SUSPENDED]}</b>")

    lines += [
        "",
        f"Bills paid: <b>{bills[BillStatus.PAID]}</b>",
        f"Bills pending: <b>{bills[BillStatus.PENDING]}</b>",
        f"Bills overdue: <b>{bills[BillStatus.OVERDUE]}</b>",
    ]
    if stats.past_due:
        lines.append(f"Pending but past due: <b>{stats.past_due}</b>")

    lines += [
        "",
        f"Revenue this month: <b>{format_money(stats.monthly_revenue, currency)}</b>",
        f"Revenue total: <b>{format_money(stats.total_revenue, currency)}</b>",
        f"Outstanding: <b>{format_money(stats.outstanding, currency)}</b>",
    ]

    if stats.total_members == 0:
        lines.append("")
        lines.append("No members yet.")

    return "\n".join(lines)


@router.message(Command("stats"))
async def cmd_stats(message: Message, is_admin: bool = False) -> None:
    """
    Show member counts per status, bill counts and revenue.
    """

    if not is_admin:
        await message.answer(NOT_ADMIN_TEXT)
        return

    try:
        stats = await get_lifecycle_service().stats()
    except SupabaseError as exc:
        logger.exception("Supabase error during /stats: %s", exc)
        await message.answer("❌ Could not reach the database. Try again later.")
        return

    await message.answer(format_stats_report(stats, get_settings().currency))
