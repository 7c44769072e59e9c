from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import Any

import httpx

from gymops.core import Settings, get_settings
from gymops.db.models import (
    Bill,
    BillStatus,
    FeePackage,
    Member,
    MemberStatus,
    Notification,
    NotificationType,
)


class SupabaseError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _ts(value: datetime) -> str:
    return value.isoformat()


class SupabaseClient:
    """
    Async Supabase REST (PostgREST) implementation of the ledger store.

    Service role key is used, so RLS is bypassed; the lifecycle service is the
    only writer of member status, bills and lifecycle notifications.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        base_url = str(self._settings.supabase_url).rstrip("/")
        self._rest = httpx.AsyncClient(
            base_url=f"{base_url}/rest/v1",
            headers={
                "apikey": self._settings.supabase_service_key,
                "Authorization": f"Bearer {self._settings.supabase_service_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=10.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._rest.aclose()

    async def _send(self, verb: str, method: str, table: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._rest.request(method, f"/{table}", **kwargs)
        except httpx.HTTPError as exc:
            raise SupabaseError(f"Supabase REST {verb} could not reach '{table}'", detail=str(exc)) from exc
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST {verb} failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        return response

    async def _select(self, table: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._send("GET", "GET", table, params={"select": "*", **params})
        return response.json()

    async def _get_single_row(
        self,
        table: str,
        params: dict[str, Any],
    ) -> dict[str, Any] | None:
        items = await self._select(table, {**params, "limit": 1})
        if not items:
            return None
        return items[0]

    async def _insert_row(
        self,
        table: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._send(
            "INSERT",
            "POST",
            table,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        items: list[dict[str, Any]] = response.json()
        if not items:
            raise SupabaseError(f"Empty insert response for table '{table}'")
        return items[0]

    async def _update_rows(
        self,
        table: str,
        params: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """
        PATCH every row matching `params`; the filters double as the write guard.

        Returns the updated rows, empty when no row matched.
        """
        response = await self._send(
            "UPDATE",
            "PATCH",
            table,
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    # Reads

    async def get_member(self, member_id: str) -> Member | None:
        row = await self._get_single_row("members", {"id": f"eq.{member_id}"})
        return Member.model_validate(row) if row else None

    async def get_bill(self, bill_id: str) -> Bill | None:
        row = await self._get_single_row("bills", {"id": f"eq.{bill_id}"})
        return Bill.model_validate(row) if row else None

    async def get_fee_package(self, package_id: str) -> FeePackage | None:
        row = await self._get_single_row("fee_packages", {"id": f"eq.{package_id}"})
        return FeePackage.model_validate(row) if row else None

    async def get_active_members_with_end_date_before(self, when: datetime) -> list[Member]:
        items = await self._select(
            "members",
            {
                "status": f"eq.{MemberStatus.ACTIVE.value}",
                "membership_end_date": f"lt.{_ts(when)}",
                "order": "membership_end_date.asc",
            },
        )
        return [Member.model_validate(item) for item in items]

    async def get_pending_bills_due_before(self, when: datetime) -> list[Bill]:
        items = await self._select(
            "bills",
            {
                "status": f"eq.{BillStatus.PENDING.value}",
                "due_date": f"lt.{_ts(when)}",
                "order": "due_date.asc",
            },
        )
        return [Bill.model_validate(item) for item in items]

    async def list_active_members(self) -> list[Member]:
        items = await self._select(
            "members",
            {
                "status": f"eq.{MemberStatus.ACTIVE.value}",
                "order": "membership_end_date.asc",
            },
        )
        return [Member.model_validate(item) for item in items]

    async def list_members(self) -> list[Member]:
        items = await self._select("members", {"order": "membership_number.asc"})
        return [Member.model_validate(item) for item in items]

    async def list_bills(self) -> list[Bill]:
        items = await self._select("bills", {"order": "due_date.asc"})
        return [Bill.model_validate(item) for item in items]

    async def find_notification(
        self,
        member_id: str,
        type: NotificationType,
        related_bill_id: str,
    ) -> Notification | None:
        row = await self._get_single_row(
            "notifications",
            {
                "member_id": f"eq.{member_id}",
                "type": f"eq.{type.value}",
                "related_bill_id": f"eq.{related_bill_id}",
            },
        )
        return Notification.model_validate(row) if row else None

    # Writes

    async def save_member(
        self,
        member: Member,
        expected_prior_status: Collection[MemberStatus],
    ) -> Member | None:
        """
        Write the lifecycle columns of a member while its stored status is
        still one of `expected_prior_status`; otherwise None is returned.
        """
        statuses = ",".join(sorted(status.value for status in expected_prior_status))
        payload = member.model_dump(
            mode="json",
            include={"status", "fee_package_id", "membership_start_date", "membership_end_date"},
        )
        items = await self._update_rows(
            "members",
            {"id": f"eq.{member.id}", "status": f"in.({statuses})"},
            payload,
        )
        return Member.model_validate(items[0]) if items else None

    async def expire_member(self, member: Member, now: datetime) -> Member | None:
        """
        Flip a member to EXPIRED only if the stored row is still ACTIVE with an
        end date before `now`. A member re-activated since it was read no
        longer matches and is left alone.
        """
        items = await self._update_rows(
            "members",
            {
                "id": f"eq.{member.id}",
                "status": f"eq.{MemberStatus.ACTIVE.value}",
                "membership_end_date": f"lt.{_ts(now)}",
            },
            {"status": MemberStatus.EXPIRED.value},
        )
        return Member.model_validate(items[0]) if items else None

    async def save_bill(
        self,
        bill: Bill,
        expected_prior_status: Collection[BillStatus],
    ) -> Bill | None:
        """
        Compare-and-swap on the bill status column.

        The update only applies while the stored status is one of
        `expected_prior_status`; otherwise None is returned.
        """
        statuses = ",".join(sorted(status.value for status in expected_prior_status))
        payload = bill.model_dump(
            mode="json",
            include={"status", "paid_date", "paid_by_admin"},
        )
        items = await self._update_rows(
            "bills",
            {"id": f"eq.{bill.id}", "status": f"in.({statuses})"},
            payload,
        )
        return Bill.model_validate(items[0]) if items else None

    async def create_bill(self, bill: Bill) -> Bill:
        payload = bill.model_dump(mode="json", exclude={"id"}, exclude_none=True)
        row = await self._insert_row("bills", payload)
        return Bill.model_validate(row)

    async def create_notification(self, notification: Notification) -> Notification:
        payload = notification.model_dump(
            mode="json",
            exclude={"id", "created_at"},
            exclude_none=True,
        )
        row = await self._insert_row("notifications", payload)
        return Notification.model_validate(row)


_supabase_client: SupabaseClient | None = None


def get_supabase_client() -> SupabaseClient:
    """
    Lazy singleton for SupabaseClient.

    The bot entry point closes it on shutdown.
    """

    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
