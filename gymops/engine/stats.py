from __future__ import annotations

from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from gymops.db.models import Bill, BillStatus, Member, MemberStatus


class LedgerStats(BaseModel):
    """Member and billing counters for the admin report."""

    members: dict[MemberStatus, int]
    bills: dict[BillStatus, int]
    # PENDING bills already past due that the next sweep will flag
    past_due: int = 0
    outstanding: Decimal = Decimal("0")
    total_revenue: Decimal = Decimal("0")
    monthly_revenue: Decimal = Decimal("0")

    @property
    def total_members(self) -> int:
        return sum(self.members.values())


def compute_stats(members: Iterable[Member], bills: Iterable[Bill], now: datetime) -> LedgerStats:
    """
    Count members per status and bills per status, and sum revenue.

    Monthly revenue is what was paid in the calendar month (UTC) of `now`.
    """
    member_counter: Counter[MemberStatus] = Counter(member.status for member in members)

    bill_counter: Counter[BillStatus] = Counter()
    past_due = 0
    outstanding = Decimal("0")
    total_revenue = Decimal("0")
    monthly_revenue = Decimal("0")

    for bill in bills:
        bill_counter[bill.status] += 1
        if bill.status is BillStatus.PAID:
            total_revenue += bill.amount
            if bill.paid_date and (bill.paid_date.year, bill.paid_date.month) == (now.year, now.month):
                monthly_revenue += bill.amount
            continue

        outstanding += bill.amount
        if bill.status is BillStatus.PENDING and bill.due_date < now:
            past_due += 1

    return LedgerStats(
        members={status: member_counter.get(status, 0) for status in MemberStatus},
        bills={status: bill_counter.get(status, 0) for status in BillStatus},
        past_due=past_due,
        outstanding=outstanding,
        total_revenue=total_revenue,
        monthly_revenue=monthly_revenue,
    )
