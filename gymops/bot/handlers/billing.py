from __future__ import annotations

from decimal import Decimal, InvalidOperation

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from aiogram.utils.markdown import hcode
from aiogram.utils.text_decorations import html_decoration

from gymops.core.logging import configure_logging
from gymops.engine import ErrorKind, TransitionResult, get_lifecycle_service
from gymops.engine.notifications import format_money

router = Router(name="billing")
logger = configure_logging()

NOT_ADMIN_TEXT = "This command is only available to gym administrators."

_ERROR_TEXT = {
    ErrorKind.MEMBER_NOT_FOUND: "Member not found.",
    ErrorKind.PACKAGE_NOT_FOUND: "Fee package not found.",
    ErrorKind.PACKAGE_INACTIVE: "This fee package is no longer offered. Pick an active one.",
    ErrorKind.BILL_NOT_FOUND: "Bill not found.",
    ErrorKind.BILL_ALREADY_PAID: "This bill has already been paid. Nothing was changed.",
    ErrorKind.INVALID_TRANSITION: "This action is not possible for the member's current status.",
    ErrorKind.STORE_UNAVAILABLE: "Could not reach the database. Nothing was changed; try again later.",
}


def describe_error(result: TransitionResult) -> str:
    text = _ERROR_TEXT.get(result.error, "Request rejected.")
    if result.detail:
        text += "\n" + hcode(result.detail)
    return "❌ " + text


def parse_amount(raw: str) -> Decimal | None:
    try:
        amount = Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


@router.message(Command("assign"))
async def cmd_assign(
    message: Message,
    command: CommandObject,
    is_admin: bool = False,
) -> None:
    """
    /assign <member_id> <package_id>: attach a package and raise its bill.
    """

    if not is_admin:
        await message.answer(NOT_ADMIN_TEXT)
        return

    args = (command.args or "").split()
    if len(args) != 2:
        await message.answer("Usage: /assign <code>member_id</code> <code>package_id</code>")
        return
    member_id, package_id = args

    result = await get_lifecycle_service().assign_package(member_id, package_id)
    if not result.ok:
        await message.answer(describe_error(result))
        return

    bill = result.bill
    await message.answer(
        "✅ Package assigned.\n\n"
        f"<b>Bill:</b> {hcode(bill.id)}\n"
        f"<b>Amount:</b> {format_money(bill.amount, bill.currency)}\n"
        f"<b>Due:</b> {bill.due_date:%d %b %Y}\n\n"
        "The membership starts once the bill is paid (/paid)."
    )


@router.message(Command("charge"))
async def cmd_charge(
    message: Message,
    command: CommandObject,
    is_admin: bool = False,
) -> None:
    """
    /charge <member_id> <amount> [description]: bill a non-membership item.
    """

    if not is_admin:
        await message.answer(NOT_ADMIN_TEXT)
        return

    args = (command.args or "").split(maxsplit=2)
    amount = parse_amount(args[1]) if len(args) >= 2 else None
    if amount is None:
        await message.answer(
            "Usage: /charge <code>member_id</code> <code>amount</code> [description]"
        )
        return
    member_id = args[0]
    notes = args[2] if len(args) == 3 else None

    result = await get_lifecycle_service().raise_charge(member_id, amount, notes)
    if not result.ok:
        await message.answer(describe_error(result))
        return

    bill = result.bill
    lines = [
        "✅ Charge raised.",
        "",
        f"<b>Bill:</b> {hcode(bill.id)}",
        f"<b>Amount:</b> {format_money(bill.amount, bill.currency)}",
        f"<b>Due:</b> {bill.due_date:%d %b %Y}",
    ]
    if bill.notes:
        lines.append(f"<b>For:</b> {html_decoration.quote(bill.notes)}")
    await message.answer("\n".join(lines))


@router.message(Command("paid"))
async def cmd_paid(
    message: Message,
    command: CommandObject,
    is_admin: bool = False,
) -> None:
    """
    /paid <bill_id>: record payment of a pending or overdue bill.
    """

    if not is_admin:
        await message.answer(NOT_ADMIN_TEXT)
        return

    bill_id = (command.args or "").strip()
    if not bill_id or " " in bill_id:
        await message.answer("Usage: /paid <code>bill_id</code>")
        return

    result = await get_lifecycle_service().mark_bill_paid(bill_id)
    if not result.ok:
        await message.answer(describe_error(result))
        return

    bill, member = result.bill, result.member
    lines = [
        "✅ Payment recorded.",
        "",
        f"<b>Amount:</b> {format_money(bill.amount, bill.currency)}",
        f"<b>Paid:</b> {bill.paid_date:%d %b %Y}",
    ]
    if result.member_changed:
        lines.append(
            f"<b>Membership:</b> {member.membership_start_date:%d %b %Y} – "
            f"{member.membership_end_date:%d %b %Y}"
        )
    await message.answer("\n".join(lines))
