"""Pure lifecycle decisions: no store, no clock, just snapshots and `now`."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gymops.db.models import (
    Bill,
    BillStatus,
    BillType,
    FeePackage,
    Member,
    MemberStatus,
    NotificationType,
)
from gymops.engine.decisions import (
    decide_assign_package,
    decide_expiry_sweep,
    decide_mark_bill_paid,
    decide_overdue_bills,
    decide_raise_charge,
    members_expiring_soon,
)
from gymops.engine.errors import ErrorKind, LifecycleError

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)

QUARTERLY = FeePackage(id="pkg-q", name="Quarterly", amount=Decimal("4000"), duration_months=3)
RETIRED = FeePackage(id="pkg-old", name="Old Annual", amount=Decimal("9000"), duration_months=12, is_active=False)


def active_member(member_id="m-1", start=NOW - timedelta(days=30), months=3):
    end = start + timedelta(days=30 * months)
    return Member(
        id=member_id,
        status=MemberStatus.ACTIVE,
        fee_package_id="pkg-q",
        membership_start_date=start,
        membership_end_date=end,
    )


def pending_bill(**overrides):
    fields = dict(
        id="bill-1",
        member_id="m-1",
        fee_package_id="pkg-q",
        bill_type=BillType.MEMBERSHIP,
        amount=Decimal("4000"),
        due_date=NOW + timedelta(days=7),
    )
    fields.update(overrides)
    return Bill(**fields)


# =============================================================================
# decide_assign_package
# =============================================================================

def test_assign_creates_pending_bill_and_keeps_member_inactive():
    member = Member(id="m-1")

    decision = decide_assign_package(member, QUARTERLY, NOW)

    assert decision.member.status is MemberStatus.INACTIVE
    assert decision.member.fee_package_id == "pkg-q"
    assert decision.member.membership_end_date is None
    assert decision.bill.status is BillStatus.PENDING
    assert decision.bill.amount == Decimal("4000")
    assert decision.bill.due_date == NOW + timedelta(days=7)
    assert decision.bill.bill_type is BillType.MEMBERSHIP
    [intent] = decision.notifications
    assert intent.type is NotificationType.BILL_PENDING
    assert intent.package_name == "Quarterly"
    assert intent.amount == Decimal("4000")


def test_assign_uses_configured_grace_period():
    decision = decide_assign_package(Member(id="m-1"), QUARTERLY, NOW, grace_period=timedelta(days=3))
    assert decision.bill.due_date == NOW + timedelta(days=3)


def test_assign_does_not_mutate_input_snapshot():
    member = active_member()
    decide_assign_package(member, QUARTERLY, NOW)
    assert member.status is MemberStatus.ACTIVE
    assert member.membership_end_date is not None


@pytest.mark.parametrize(
    "member, package, kind",
    [
        (None, QUARTERLY, ErrorKind.MEMBER_NOT_FOUND),
        (Member(id="m-1"), None, ErrorKind.PACKAGE_NOT_FOUND),
        (Member(id="m-1"), RETIRED, ErrorKind.PACKAGE_INACTIVE),
        (Member(id="m-1", status=MemberStatus.SUSPENDED), QUARTERLY, ErrorKind.INVALID_TRANSITION),
    ],
)
def test_assign_rejections(member, package, kind):
    with pytest.raises(LifecycleError) as excinfo:
        decide_assign_package(member, package, NOW)
    assert excinfo.value.kind is kind


def test_reassigning_a_deactivated_package_is_allowed():
    member = Member(id="m-1", status=MemberStatus.EXPIRED, fee_package_id="pkg-old",
                    membership_start_date=NOW - timedelta(days=400),
                    membership_end_date=NOW - timedelta(days=35))

    decision = decide_assign_package(member, RETIRED, NOW)

    assert decision.bill.amount == Decimal("9000")
    assert decision.member.fee_package_id == "pkg-old"


# =============================================================================
# decide_mark_bill_paid
# =============================================================================

def test_paying_membership_bill_activates_from_payment_moment():
    paid_at = NOW + timedelta(days=10)

    decision = decide_mark_bill_paid(pending_bill(), Member(id="m-1", fee_package_id="pkg-q"), QUARTERLY, paid_at)

    assert decision.bill.status is BillStatus.PAID
    assert decision.bill.paid_date == paid_at
    assert decision.member_changed
    assert decision.member.status is MemberStatus.ACTIVE
    assert decision.member.membership_start_date == paid_at
    assert decision.member.membership_end_date == datetime(2024, 6, 11, 9, 30, tzinfo=timezone.utc)
    [intent] = decision.notifications
    assert intent.type is NotificationType.MEMBERSHIP_ACTIVATED
    assert intent.bill_id == "bill-1"


def test_paying_overdue_bill_is_the_same_as_paying_pending():
    paid_at = NOW + timedelta(days=40)
    overdue = pending_bill(status=BillStatus.OVERDUE)

    decision = decide_mark_bill_paid(overdue, Member(id="m-1"), QUARTERLY, paid_at)

    assert decision.bill.status is BillStatus.PAID
    assert decision.member.membership_start_date == paid_at


def test_other_bill_leaves_member_identical():
    member = active_member()
    charge = pending_bill(fee_package_id=None, bill_type=BillType.OTHER, amount=Decimal("2500"),
                          notes="Whey protein 2kg")

    decision = decide_mark_bill_paid(charge, member, None, NOW)

    assert decision.member.model_dump() == member.model_dump()
    assert not decision.member_changed
    [intent] = decision.notifications
    assert intent.type is NotificationType.GENERAL
    assert intent.description == "Whey protein 2kg"


def test_membership_bill_without_resolvable_package_only_confirms_payment():
    member = active_member()

    decision = decide_mark_bill_paid(pending_bill(), member, None, NOW)

    assert decision.bill.status is BillStatus.PAID
    assert decision.member.model_dump() == member.model_dump()
    assert decision.notifications[0].type is NotificationType.GENERAL


@pytest.mark.parametrize(
    "bill, member, kind",
    [
        (None, Member(id="m-1"), ErrorKind.BILL_NOT_FOUND),
        (pending_bill(), None, ErrorKind.INVALID_TRANSITION),
        (pending_bill(status=BillStatus.PAID, paid_date=NOW), Member(id="m-1"), ErrorKind.BILL_ALREADY_PAID),
        (pending_bill(), Member(id="m-1", status=MemberStatus.SUSPENDED), ErrorKind.INVALID_TRANSITION),
    ],
)
def test_mark_paid_rejections(bill, member, kind):
    with pytest.raises(LifecycleError) as excinfo:
        decide_mark_bill_paid(bill, member, QUARTERLY, NOW)
    assert excinfo.value.kind is kind


def test_suspended_member_can_still_settle_other_charges():
    member = Member(id="m-1", status=MemberStatus.SUSPENDED)
    charge = pending_bill(fee_package_id=None, bill_type=BillType.OTHER)

    decision = decide_mark_bill_paid(charge, member, None, NOW)

    assert decision.bill.status is BillStatus.PAID
    assert decision.member.status is MemberStatus.SUSPENDED


# =============================================================================
# decide_raise_charge
# =============================================================================

def test_charge_is_an_other_bill_with_pending_notice():
    member = active_member()

    decision = decide_raise_charge(member, Decimal("2499.50"), "Whey protein 2kg", NOW)

    assert decision.bill.bill_type is BillType.OTHER
    assert decision.bill.fee_package_id is None
    assert decision.bill.status is BillStatus.PENDING
    assert decision.bill.due_date == NOW + timedelta(days=7)
    assert decision.bill.notes == "Whey protein 2kg"
    [intent] = decision.notifications
    assert intent.type is NotificationType.BILL_PENDING
    assert intent.description == "Whey protein 2kg"
    assert intent.package_name is None


def test_blank_charge_notes_are_dropped():
    decision = decide_raise_charge(Member(id="m-1"), Decimal("100"), "   ", NOW)
    assert decision.bill.notes is None


@pytest.mark.parametrize(
    "member, amount, kind",
    [
        (None, Decimal("100"), ErrorKind.MEMBER_NOT_FOUND),
        (Member(id="m-1"), Decimal("0"), ErrorKind.INVALID_TRANSITION),
    ],
)
def test_charge_rejections(member, amount, kind):
    with pytest.raises(LifecycleError) as excinfo:
        decide_raise_charge(member, amount, None, NOW)
    assert excinfo.value.kind is kind


# =============================================================================
# decide_expiry_sweep / decide_overdue_bills
# =============================================================================

def test_sweep_only_expires_active_members_past_their_end():
    ended = active_member("m-ended", start=NOW - timedelta(days=120))
    running = active_member("m-running")
    suspended = ended.model_copy(update={"id": "m-susp", "status": MemberStatus.SUSPENDED})
    already = ended.model_copy(update={"id": "m-exp", "status": MemberStatus.EXPIRED})
    inactive = Member(id="m-new")

    decision = decide_expiry_sweep([ended, running, suspended, already, inactive], NOW)

    assert [m.id for m in decision.member_updates] == ["m-ended"]
    assert decision.member_updates[0].status is MemberStatus.EXPIRED
    assert decision.notifications == []


def test_sweep_is_idempotent():
    ended = active_member("m-ended", start=NOW - timedelta(days=120))

    first = decide_expiry_sweep([ended], NOW)
    second = decide_expiry_sweep(first.member_updates, NOW)

    assert second.member_updates == []


def test_end_date_equal_to_now_is_not_yet_expired():
    member = active_member().model_copy(update={"membership_end_date": NOW})
    assert decide_expiry_sweep([member], NOW).member_updates == []


def test_overdue_only_touches_pending_bills_past_due():
    late = pending_bill(id="late", due_date=NOW - timedelta(days=1))
    on_time = pending_bill(id="on-time")
    paid = pending_bill(id="paid", status=BillStatus.PAID, paid_date=NOW, due_date=NOW - timedelta(days=3))

    updates = decide_overdue_bills([late, on_time, paid], NOW)

    assert [b.id for b in updates] == ["late"]
    assert updates[0].status is BillStatus.OVERDUE
    assert decide_overdue_bills(updates, NOW) == []


# =============================================================================
# members_expiring_soon
# =============================================================================

def test_expiring_soon_window_and_order():
    def ending_in(member_id, delta):
        return active_member(member_id).model_copy(update={"membership_end_date": NOW + delta})

    members = [
        ending_in("in-6-days", timedelta(days=6)),
        ending_in("in-2-days", timedelta(days=2)),
        ending_in("in-8-days", timedelta(days=8)),
        ending_in("already-ended", timedelta(days=-1)),
        ending_in("expired", timedelta(days=3)).model_copy(update={"status": MemberStatus.EXPIRED}),
    ]

    result = members_expiring_soon(members, NOW)

    assert [m.id for m in result] == ["in-2-days", "in-6-days"]
