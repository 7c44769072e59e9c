"""
Pure lifecycle decisions for members and bills.

Every function here takes a snapshot plus an explicit `now` and returns the
next snapshot together with the notifications the transition calls for. No
I/O happens here; `gymops.engine.orchestrator` does the reading and writing.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from gymops.db.models import (
    Bill,
    BillStatus,
    BillType,
    FeePackage,
    Member,
    MemberStatus,
    NotificationType,
)
from gymops.engine.dates import add_months
from gymops.engine.errors import ErrorKind, LifecycleError
from gymops.engine.notifications import NotificationIntent

DEFAULT_GRACE_PERIOD = timedelta(days=7)
DEFAULT_EXPIRING_SOON_WINDOW = timedelta(days=7)


class AssignPackageDecision(BaseModel):
    member: Member
    bill: Bill
    notifications: list[NotificationIntent]


class MarkBillPaidDecision(BaseModel):
    bill: Bill
    member: Member
    member_changed: bool
    notifications: list[NotificationIntent]


class RaiseChargeDecision(BaseModel):
    bill: Bill
    notifications: list[NotificationIntent]


class ExpirySweepDecision(BaseModel):
    member_updates: list[Member]
    # Expiry is silent; kept so every decision has the same shape
    notifications: list[NotificationIntent] = []


def decide_assign_package(
    member: Optional[Member],
    package: Optional[FeePackage],
    now: datetime,
    *,
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
    currency: str = "INR",
) -> AssignPackageDecision:
    """
    Attach a fee package to a member and raise the membership bill for it.

    Membership is not granted here: the member is left INACTIVE with no window
    until the bill is paid. A deactivated package can only be re-assigned to a
    member who already holds it.
    """
    if member is None:
        raise LifecycleError(ErrorKind.MEMBER_NOT_FOUND, "member does not exist")
    if package is None:
        raise LifecycleError(ErrorKind.PACKAGE_NOT_FOUND, "fee package does not exist")
    if not package.is_active and member.fee_package_id != package.id:
        raise LifecycleError(
            ErrorKind.PACKAGE_INACTIVE,
            f"fee package {package.name!r} is no longer offered",
        )
    if member.status is MemberStatus.SUSPENDED:
        raise LifecycleError(
            ErrorKind.INVALID_TRANSITION,
            f"member {member.id} is suspended",
        )

    new_member = member.model_copy(
        update={
            "status": MemberStatus.INACTIVE,
            "fee_package_id": package.id,
            "membership_start_date": None,
            "membership_end_date": None,
        }
    )
    bill = Bill(
        member_id=member.id,
        fee_package_id=package.id,
        bill_type=BillType.MEMBERSHIP,
        amount=package.amount,
        currency=currency,
        due_date=now + grace_period,
        status=BillStatus.PENDING,
        generated_date=now,
    )
    pending = NotificationIntent(
        member_id=member.id,
        type=NotificationType.BILL_PENDING,
        package_name=package.name,
        amount=package.amount,
        currency=currency,
    )
    return AssignPackageDecision(member=new_member, bill=bill, notifications=[pending])


def decide_mark_bill_paid(
    bill: Optional[Bill],
    member: Optional[Member],
    package: Optional[FeePackage],
    now: datetime,
) -> MarkBillPaidDecision:
    """
    Settle a PENDING or OVERDUE bill.

    A MEMBERSHIP bill whose package still resolves activates the member with a
    window starting at `now` (never at the due date). Any other payment leaves
    the member exactly as it was and only confirms the payment.
    """
    if bill is None:
        raise LifecycleError(ErrorKind.BILL_NOT_FOUND, "bill does not exist")
    if member is None:
        raise LifecycleError(
            ErrorKind.INVALID_TRANSITION,
            f"bill {bill.id} belongs to a missing member {bill.member_id}",
        )
    if bill.status is BillStatus.PAID:
        raise LifecycleError(ErrorKind.BILL_ALREADY_PAID, f"bill {bill.id} is already paid")

    activates = bill.bill_type is BillType.MEMBERSHIP and package is not None
    if activates and member.status is MemberStatus.SUSPENDED:
        raise LifecycleError(
            ErrorKind.INVALID_TRANSITION,
            f"member {member.id} is suspended; lift the suspension before taking payment",
        )

    paid_bill = bill.model_copy(
        update={"status": BillStatus.PAID, "paid_date": now, "paid_by_admin": True}
    )

    if not activates:
        confirmation = NotificationIntent(
            member_id=member.id,
            type=NotificationType.GENERAL,
            bill_id=bill.id,
            amount=bill.amount,
            currency=bill.currency,
            description=bill.notes,
        )
        return MarkBillPaidDecision(
            bill=paid_bill,
            member=member,
            member_changed=False,
            notifications=[confirmation],
        )

    new_member = member.model_copy(
        update={
            "status": MemberStatus.ACTIVE,
            "fee_package_id": bill.fee_package_id,
            "membership_start_date": now,
            "membership_end_date": add_months(now, package.duration_months),
        }
    )
    activated = NotificationIntent(
        member_id=member.id,
        type=NotificationType.MEMBERSHIP_ACTIVATED,
        bill_id=bill.id,
        package_name=package.name,
        amount=bill.amount,
        currency=bill.currency,
        membership_end_date=new_member.membership_end_date,
    )
    return MarkBillPaidDecision(
        bill=paid_bill,
        member=new_member,
        member_changed=True,
        notifications=[activated],
    )


def decide_raise_charge(
    member: Optional[Member],
    amount: Decimal,
    notes: Optional[str],
    now: datetime,
    *,
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
    currency: str = "INR",
) -> RaiseChargeDecision:
    """
    Bill a member for something other than membership (supplements, lockers, ...).

    The member is not modified and any status may be charged, suspended
    members included.
    """
    if member is None:
        raise LifecycleError(ErrorKind.MEMBER_NOT_FOUND, "member does not exist")
    if amount <= 0:
        raise LifecycleError(ErrorKind.INVALID_TRANSITION, f"charge amount must be positive, got {amount}")

    description = notes.strip() if notes and notes.strip() else None
    bill = Bill(
        member_id=member.id,
        fee_package_id=None,
        bill_type=BillType.OTHER,
        amount=amount,
        currency=currency,
        due_date=now + grace_period,
        status=BillStatus.PENDING,
        generated_date=now,
        notes=description,
    )
    pending = NotificationIntent(
        member_id=member.id,
        type=NotificationType.BILL_PENDING,
        amount=amount,
        currency=currency,
        description=description,
    )
    return RaiseChargeDecision(bill=bill, notifications=[pending])


def decide_expiry_sweep(members: Iterable[Member], now: datetime) -> ExpirySweepDecision:
    """ACTIVE members whose window ended before `now` become EXPIRED; nobody else moves."""
    updates = [
        member.model_copy(update={"status": MemberStatus.EXPIRED})
        for member in members
        if member.status is MemberStatus.ACTIVE
        and member.membership_end_date is not None
        and member.membership_end_date < now
    ]
    return ExpirySweepDecision(member_updates=updates)


def decide_overdue_bills(bills: Iterable[Bill], now: datetime) -> list[Bill]:
    return [
        bill.model_copy(update={"status": BillStatus.OVERDUE})
        for bill in bills
        if bill.status is BillStatus.PENDING and bill.due_date < now
    ]


def members_expiring_soon(
    members: Iterable[Member],
    now: datetime,
    *,
    within: timedelta = DEFAULT_EXPIRING_SOON_WINDOW,
) -> list[Member]:
    """ACTIVE members whose window ends within `within` of `now`, soonest first."""
    horizon = now + within
    expiring = [
        member
        for member in members
        if member.status is MemberStatus.ACTIVE
        and member.membership_end_date is not None
        and now <= member.membership_end_date <= horizon
    ]
    return sorted(expiring, key=lambda member: member.membership_end_date)
