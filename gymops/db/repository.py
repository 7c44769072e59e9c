from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import Protocol

from gymops.db.models import (
    Bill,
    BillStatus,
    FeePackage,
    Member,
    MemberStatus,
    Notification,
    NotificationType,
)


class LedgerStore(Protocol):
    """
    Narrow repository interface the lifecycle orchestrator reads and writes through.

    Lookups return None when the row does not exist. The conditional writes
    (`save_member`, `save_bill`, `expire_member`) return None when their guard
    no longer holds in the stored row, i.e. zero rows were affected.
    """

    async def get_member(self, member_id: str) -> Member | None: ...

    async def get_bill(self, bill_id: str) -> Bill | None: ...

    async def get_fee_package(self, package_id: str) -> FeePackage | None: ...

    async def get_active_members_with_end_date_before(
        self, when: datetime
    ) -> list[Member]: ...

    async def get_pending_bills_due_before(self, when: datetime) -> list[Bill]: ...

    async def list_active_members(self) -> list[Member]: ...

    async def list_members(self) -> list[Member]: ...

    async def list_bills(self) -> list[Bill]: ...

    async def save_member(
        self,
        member: Member,
        expected_prior_status: Collection[MemberStatus],
    ) -> Member | None: ...

    async def expire_member(self, member: Member, now: datetime) -> Member | None: ...

    async def save_bill(
        self,
        bill: Bill,
        expected_prior_status: Collection[BillStatus],
    ) -> Bill | None: ...

    async def create_bill(self, bill: Bill) -> Bill: ...

    async def create_notification(self, notification: Notification) -> Notification: ...

    async def find_notification(
        self,
        member_id: str,
        type: NotificationType,
        related_bill_id: str,
    ) -> Notification | None: ...
