from __future__ import annotations

import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from gymops.db.models import Member, Notification, NotificationType
from gymops.db.repository import LedgerStore

logger = logging.getLogger(__name__)

_CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


class NotificationIntent(BaseModel):
    """Structured description of a notification a transition calls for."""

    member_id: str
    type: NotificationType
    bill_id: Optional[str] = None
    package_name: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "INR"
    # Free-text label of an OTHER charge, taken from the bill notes
    description: Optional[str] = None
    membership_end_date: Optional[datetime] = None

    @property
    def dedupe_key(self) -> tuple[str, NotificationType, Optional[str]]:
        return (self.member_id, self.type, self.bill_id)


class ExpiringSoonNotice(BaseModel):
    """Display-only reminder; never written to the notifications table."""

    member: Member
    package_name: Optional[str] = None
    days_left: int
    title: str
    message: str


def format_money(amount: Decimal, currency: str) -> str:
    if amount == amount.to_integral_value():
        number = f"{amount:,.0f}"
    else:
        number = f"{amount:,.2f}"
    symbol = _CURRENCY_SYMBOLS.get(currency)
    return f"{symbol}{number}" if symbol else f"{currency} {number}"


def format_notification(intent: NotificationIntent) -> Notification:
    package = intent.package_name or "membership"
    money = format_money(intent.amount, intent.currency) if intent.amount is not None else ""

    if intent.type is NotificationType.BILL_PENDING:
        title = "Payment Pending"
        subject = intent.package_name or intent.description or "additional charge"
        message = f"Payment pending for {subject} - {money}"
    elif intent.type is NotificationType.MEMBERSHIP_ACTIVATED:
        title = "Membership Activated"
        message = f"Welcome! Your {package} membership is now active"
        if intent.membership_end_date is not None:
            message += f" until {intent.membership_end_date:%d %b %Y}"
    elif intent.type is NotificationType.GENERAL:
        title = "Payment Received"
        message = f"Payment of {money} received for {intent.description or 'additional charge'}. Thank you!"
    else:
        raise ValueError(f"{intent.type.value} notifications are not persisted")

    return Notification(
        member_id=intent.member_id,
        type=intent.type,
        title=title,
        message=message,
        related_bill_id=intent.bill_id,
        related_package_name=intent.package_name or intent.description,
        related_amount=intent.amount,
    )


def format_expiring_soon(
    member: Member,
    package_name: Optional[str],
    now: datetime,
) -> ExpiringSoonNotice:
    if member.membership_end_date is None:
        raise ValueError(f"member {member.id} has no membership window")

    remaining = (member.membership_end_date - now).total_seconds()
    days_left = max(0, math.ceil(remaining / 86400))
    package = package_name or "membership"
    if days_left == 0:
        message = f"Your {package} membership expires today. Renew now to keep your access!"
    else:
        plural = "" if days_left == 1 else "s"
        message = (
            f"Your {package} membership expires in {days_left} day{plural}. "
            "Renew now to continue enjoying gym facilities!"
        )
    return ExpiringSoonNotice(
        member=member,
        package_name=package_name,
        days_left=days_left,
        title="Membership Expiring Soon",
        message=message,
    )


class NotificationEmitter:
    """
    Formats lifecycle notifications and persists each one at most once.

    Writing is best-effort: the transition that produced an intent is already
    stored, so a failed insert is logged and skipped.
    """

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    async def emit(self, intents: Iterable[NotificationIntent]) -> list[Notification]:
        created: list[Notification] = []
        seen: set[tuple[str, NotificationType, Optional[str]]] = set()

        for intent in intents:
            key = intent.dedupe_key
            if key in seen:
                logger.debug("Dropping duplicate %s intent for member %s", intent.type.value, intent.member_id)
                continue
            seen.add(key)

            try:
                if intent.bill_id is not None:
                    existing = await self._store.find_notification(
                        intent.member_id, intent.type, intent.bill_id
                    )
                    if existing is not None:
                        logger.info(
                            "%s notification for bill %s already exists, skipping",
                            intent.type.value,
                            intent.bill_id,
                        )
                        continue
                notification = await self._store.create_notification(format_notification(intent))
            except Exception as exc:
                logger.exception(
                    "Failed to create %s notification for member %s: %s",
                    intent.type.value,
                    intent.member_id,
                    exc,
                )
                continue

            created.append(notification)

        return created
