"""Notification formatting and de-duplication."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gymops.db.models import Member, MemberStatus, Notification, NotificationType
from gymops.engine.notifications import (
    NotificationEmitter,
    NotificationIntent,
    format_expiring_soon,
    format_money,
    format_notification,
)

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "amount, currency, expected",
    [
        (Decimal("4000"), "INR", "₹4,000"),
        (Decimal("4000.00"), "INR", "₹4,000"),
        (Decimal("1499.5"), "INR", "₹1,499.50"),
        (Decimal("25"), "USD", "$25"),
        (Decimal("120"), "AED", "AED 120"),
    ],
)
def test_format_money(amount, currency, expected):
    assert format_money(amount, currency) == expected


def test_activation_message_carries_structured_references():
    intent = NotificationIntent(
        member_id="m-1",
        type=NotificationType.MEMBERSHIP_ACTIVATED,
        bill_id="bill-9",
        package_name="Half-Yearly",
        amount=Decimal("7500"),
        membership_end_date=datetime(2024, 9, 1, tzinfo=timezone.utc),
    )

    notification = format_notification(intent)

    assert notification.title == "Membership Activated"
    assert notification.message == "Welcome! Your Half-Yearly membership is now active until 01 Sep 2024"
    assert notification.related_bill_id == "bill-9"
    assert notification.related_package_name == "Half-Yearly"
    assert notification.related_amount == Decimal("7500")
    assert notification.is_read is False


def test_payment_confirmation_without_description():
    intent = NotificationIntent(member_id="m-1", type=NotificationType.GENERAL, amount=Decimal("300"))

    notification = format_notification(intent)

    assert notification.title == "Payment Received"
    assert notification.message == "Payment of ₹300 received for additional charge. Thank you!"


def test_expiring_soon_is_display_only():
    with pytest.raises(ValueError):
        format_notification(
            NotificationIntent(member_id="m-1", type=NotificationType.MEMBERSHIP_EXPIRING)
        )


@pytest.mark.parametrize(
    "remaining, days_left, fragment",
    [
        (timedelta(hours=5), 1, "expires in 1 day."),
        (timedelta(days=4), 4, "expires in 4 days."),
        (timedelta(0), 0, "expires today."),
    ],
)
def test_format_expiring_soon(remaining, days_left, fragment):
    member = Member(
        id="m-1",
        status=MemberStatus.ACTIVE,
        membership_start_date=NOW - timedelta(days=30),
        membership_end_date=NOW + remaining,
    )

    notice = format_expiring_soon(member, "Monthly", NOW)

    assert notice.days_left == days_left
    assert notice.title == "Membership Expiring Soon"
    assert fragment in notice.message


class RecordingStore:
    def __init__(self, existing=()):
        self.created = []
        self.existing = list(existing)

    async def find_notification(self, member_id, type, related_bill_id):
        for notification in self.existing + self.created:
            if (notification.member_id, notification.type, notification.related_bill_id) == (
                member_id,
                type,
                related_bill_id,
            ):
                return notification
        return None

    async def create_notification(self, notification):
        self.created.append(notification)
        return notification


@pytest.mark.asyncio
async def test_emitter_drops_duplicates_in_one_batch():
    store = RecordingStore()
    intent = NotificationIntent(
        member_id="m-1",
        type=NotificationType.BILL_PENDING,
        bill_id="bill-1",
        package_name="Monthly",
        amount=Decimal("1500"),
    )

    created = await NotificationEmitter(store).emit([intent, intent.model_copy()])

    assert len(created) == 1
    assert len(store.created) == 1


@pytest.mark.asyncio
async def test_emitter_skips_notification_already_stored_for_bill():
    existing = Notification(
        id="n-1",
        member_id="m-1",
        type=NotificationType.MEMBERSHIP_ACTIVATED,
        title="Membership Activated",
        message="Welcome!",
        related_bill_id="bill-1",
    )
    store = RecordingStore(existing=[existing])
    intent = NotificationIntent(
        member_id="m-1",
        type=NotificationType.MEMBERSHIP_ACTIVATED,
        bill_id="bill-1",
        package_name="Monthly",
    )

    created = await NotificationEmitter(store).emit([intent])

    assert created == []
    assert store.created == []


@pytest.mark.asyncio
async def test_emitter_keeps_distinct_kinds_for_same_bill():
    store = RecordingStore()
    intents = [
        NotificationIntent(member_id="m-1", type=NotificationType.BILL_PENDING, bill_id="bill-1"),
        NotificationIntent(member_id="m-1", type=NotificationType.GENERAL, bill_id="bill-1"),
    ]

    created = await NotificationEmitter(store).emit(intents)

    assert [n.type for n in created] == [NotificationType.BILL_PENDING, NotificationType.GENERAL]
