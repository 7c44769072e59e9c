from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from gymops.core import Clock, SystemClock, get_settings
from gymops.db import SupabaseError, get_supabase_client
from gymops.db.models import (
    UNPAID_BILL_STATUSES,
    Bill,
    BillStatus,
    FeePackage,
    Member,
    Notification,
)
from gymops.db.repository import LedgerStore
from gymops.engine.decisions import (
    DEFAULT_EXPIRING_SOON_WINDOW,
    DEFAULT_GRACE_PERIOD,
    decide_assign_package,
    decide_expiry_sweep,
    decide_mark_bill_paid,
    decide_overdue_bills,
    decide_raise_charge,
    members_expiring_soon,
)
from gymops.engine.errors import ErrorKind, LifecycleError
from gymops.engine.notifications import (
    ExpiringSoonNotice,
    NotificationEmitter,
    format_expiring_soon,
)
from gymops.engine.stats import LedgerStats, compute_stats

logger = logging.getLogger(__name__)


class TransitionResult(BaseModel):
    member: Optional[Member] = None
    bill: Optional[Bill] = None
    # True only when this call wrote a new membership window
    member_changed: bool = False
    notifications: list[Notification] = []
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, exc: LifecycleError) -> "TransitionResult":
        return cls(error=exc.kind, detail=exc.message)

    @classmethod
    def store_unavailable(cls, exc: SupabaseError) -> "TransitionResult":
        return cls(error=ErrorKind.STORE_UNAVAILABLE, detail=str(exc))


class SweepResult(BaseModel):
    now: datetime
    expired_members: list[Member] = []
    overdue_bills: list[Bill] = []

    @property
    def changed(self) -> bool:
        return bool(self.expired_members or self.overdue_bills)


class LifecycleService:
    """
    The only entry points that move members and bills between states.

    Each call reads a fresh snapshot, asks the pure decision function what
    should happen and only then writes. A rejected decision writes nothing and
    comes back as a result with `error` set. When the second of two writes
    fails, the first one is put back before the result is returned, so a
    transition is stored whole or not at all.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        clock: Clock | None = None,
        emitter: NotificationEmitter | None = None,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        expiring_soon_window: timedelta = DEFAULT_EXPIRING_SOON_WINDOW,
        currency: str = "INR",
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._emitter = emitter or NotificationEmitter(store)
        self._grace_period = grace_period
        self._expiring_soon_window = expiring_soon_window
        self._currency = currency

    # Entry points

    async def assign_package(self, member_id: str, package_id: str) -> TransitionResult:
        try:
            return await self._assign_package(member_id, package_id)
        except SupabaseError as exc:
            logger.exception("Store failure assigning package %s to member %s: %s", package_id, member_id, exc)
            return TransitionResult.store_unavailable(exc)

    async def mark_bill_paid(self, bill_id: str) -> TransitionResult:
        try:
            return await self._mark_bill_paid(bill_id)
        except SupabaseError as exc:
            logger.exception("Store failure marking bill %s paid: %s", bill_id, exc)
            return TransitionResult.store_unavailable(exc)

    async def raise_charge(
        self,
        member_id: str,
        amount: Decimal,
        notes: str | None = None,
    ) -> TransitionResult:
        try:
            return await self._raise_charge(member_id, amount, notes)
        except SupabaseError as exc:
            logger.exception("Store failure charging member %s: %s", member_id, exc)
            return TransitionResult.store_unavailable(exc)

    # Transitions

    async def _assign_package(self, member_id: str, package_id: str) -> TransitionResult:
        member = await self._store.get_member(member_id)
        package = await self._store.get_fee_package(package_id)
        now = self._clock.now()

        try:
            decision = decide_assign_package(
                member,
                package,
                now,
                grace_period=self._grace_period,
                currency=self._currency,
            )
        except LifecycleError as exc:
            logger.info("Package %s not assigned to member %s: %s", package_id, member_id, exc)
            return TransitionResult.failed(exc)

        # Member first: a bill must never exist for an assignment that was not stored
        saved_member = await self._store.save_member(decision.member, expected_prior_status={member.status})
        if saved_member is None:
            logger.warning("Member %s changed status during assignment; nothing written", member_id)
            return TransitionResult(
                error=ErrorKind.INVALID_TRANSITION,
                detail=f"member {member_id} changed status while the package was being assigned",
            )

        try:
            bill = await self._store.create_bill(decision.bill)
        except SupabaseError:
            await self._restore_member(member, saved_member)
            raise

        logger.info(
            "Assigned package %s to member %s, bill %s due %s",
            package_id,
            member_id,
            bill.id,
            bill.due_date.date(),
        )

        intents = [intent.model_copy(update={"bill_id": bill.id}) for intent in decision.notifications]
        notifications = await self._emitter.emit(intents)
        return TransitionResult(member=saved_member, bill=bill, notifications=notifications)

    async def _mark_bill_paid(self, bill_id: str) -> TransitionResult:
        bill = await self._store.get_bill(bill_id)
        member = await self._store.get_member(bill.member_id) if bill else None
        package = None
        if bill is not None and bill.fee_package_id:
            package = await self._store.get_fee_package(bill.fee_package_id)
        now = self._clock.now()

        try:
            decision = decide_mark_bill_paid(bill, member, package, now)
        except LifecycleError as exc:
            logger.info("Bill %s not marked paid: %s", bill_id, exc)
            return TransitionResult.failed(exc)

        # The bill write is the serialization point: only the caller whose
        # compare-and-swap lands may touch the member.
        paid = await self._store.save_bill(decision.bill, expected_prior_status=UNPAID_BILL_STATUSES)
        if paid is None:
            logger.warning("Bill %s was paid concurrently; rejecting duplicate payment", bill_id)
            return TransitionResult(
                error=ErrorKind.BILL_ALREADY_PAID,
                detail=f"bill {bill_id} is already paid",
            )

        saved_member = decision.member
        if decision.member_changed:
            try:
                saved_member = await self._store.save_member(
                    decision.member, expected_prior_status={member.status}
                )
            except SupabaseError:
                await self._restore_bill(bill)
                raise
            if saved_member is None:
                await self._restore_bill(bill)
                logger.warning(
                    "Member %s changed status during payment of bill %s; payment undone",
                    member.id,
                    bill_id,
                )
                return TransitionResult(
                    error=ErrorKind.INVALID_TRANSITION,
                    detail=f"member {member.id} changed status while bill {bill_id} was being paid",
                )
            logger.info(
                "Member %s active from %s to %s",
                saved_member.id,
                saved_member.membership_start_date,
                saved_member.membership_end_date,
            )
        else:
            logger.info("Bill %s (%s) paid; membership untouched", bill_id, paid.bill_type.value)

        notifications = await self._emitter.emit(decision.notifications)
        return TransitionResult(
            member=saved_member,
            bill=paid,
            member_changed=decision.member_changed,
            notifications=notifications,
        )

    async def _raise_charge(self, member_id: str, amount: Decimal, notes: str | None) -> TransitionResult:
        member = await self._store.get_member(member_id)
        now = self._clock.now()

        try:
            decision = decide_raise_charge(
                member,
                amount,
                notes,
                now,
                grace_period=self._grace_period,
                currency=self._currency,
            )
        except LifecycleError as exc:
            logger.info("Charge not raised for member %s: %s", member_id, exc)
            return TransitionResult.failed(exc)

        bill = await self._store.create_bill(decision.bill)
        logger.info("Charged member %s %s %s, bill %s", member_id, bill.amount, bill.currency, bill.id)

        intents = [intent.model_copy(update={"bill_id": bill.id}) for intent in decision.notifications]
        notifications = await self._emitter.emit(intents)
        return TransitionResult(member=member, bill=bill, notifications=notifications)

    # Undo of a half-applied transition

    async def _restore_member(self, original: Member, written: Member) -> None:
        try:
            restored = await self._store.save_member(original, expected_prior_status={written.status})
        except SupabaseError as exc:
            logger.exception("Could not restore member %s; it needs a manual fix: %s", original.id, exc)
            return
        if restored is None:
            logger.error("Member %s changed again before it could be restored", original.id)

    async def _restore_bill(self, original: Bill) -> None:
        try:
            restored = await self._store.save_bill(original, expected_prior_status={BillStatus.PAID})
        except SupabaseError as exc:
            logger.exception(
                "Could not restore bill %s to %s; it needs a manual fix: %s",
                original.id,
                original.status.value,
                exc,
            )
            return
        if restored is None:
            logger.error("Bill %s is no longer PAID; nothing to restore", original.id)

    # Sweep and read-only queries

    async def run_expiry_sweep(self, now: datetime | None = None) -> SweepResult:
        """
        Demote ACTIVE members whose window has ended and flag unpaid bills past due.

        Each write re-checks its condition against the stored row, so running
        alongside payments can never demote a freshly activated member.
        """
        now = now or self._clock.now()

        candidates = await self._store.get_active_members_with_end_date_before(now)
        decision = decide_expiry_sweep(candidates, now)
        expired: list[Member] = []
        for update in decision.member_updates:
            stored = await self._store.expire_member(update, now)
            if stored is None:
                logger.info("Member %s changed since it was read; not expiring", update.id)
                continue
            expired.append(stored)

        pending = await self._store.get_pending_bills_due_before(now)
        overdue: list[Bill] = []
        for update in decide_overdue_bills(pending, now):
            stored = await self._store.save_bill(update, expected_prior_status={BillStatus.PENDING})
            if stored is not None:
                overdue.append(stored)

        if expired or overdue:
            logger.info(
                "Expiry sweep at %s: %d member(s) expired, %d bill(s) overdue",
                now.isoformat(),
                len(expired),
                len(overdue),
            )
        else:
            logger.debug("Expiry sweep at %s: nothing to do", now.isoformat())

        return SweepResult(now=now, expired_members=expired, overdue_bills=overdue)

    async def list_expiring_soon(self, now: datetime | None = None) -> list[ExpiringSoonNotice]:
        """Members whose window ends soon, formatted for display. Nothing is stored."""
        now = now or self._clock.now()
        members = members_expiring_soon(
            await self._store.list_active_members(),
            now,
            within=self._expiring_soon_window,
        )

        packages: dict[str, FeePackage | None] = {}
        notices: list[ExpiringSoonNotice] = []
        for member in members:
            package_id = member.fee_package_id
            if package_id and package_id not in packages:
                packages[package_id] = await self._store.get_fee_package(package_id)
            package = packages.get(package_id) if package_id else None
            notices.append(format_expiring_soon(member, package.name if package else None, now))
        return notices

    async def stats(self, now: datetime | None = None) -> LedgerStats:
        now = now or self._clock.now()
        members = await self._store.list_members()
        bills = await self._store.list_bills()
        return compute_stats(members, bills, now)


_lifecycle_service: LifecycleService | None = None


def get_lifecycle_service() -> LifecycleService:
    """
    Lazy singleton wired to Supabase and the wall clock.
    """

    global _lifecycle_service
    if _lifecycle_service is None:
        settings = get_settings()
        _lifecycle_service = LifecycleService(
            get_supabase_client(),
            grace_period=settings.grace_period,
            expiring_soon_window=settings.expiring_soon_window,
            currency=settings.currency,
        )
    return _lifecycle_service
