from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field


def _as_utc(value: datetime) -> datetime:
    # DATE columns and naive timestamps are read as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class MemberStatus(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    # Set by administrators only; no lifecycle decision leaves this state
    SUSPENDED = "SUSPENDED"


class BillStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class BillType(str, Enum):
    MEMBERSHIP = "MEMBERSHIP"
    OTHER = "OTHER"


class NotificationType(str, Enum):
    BILL_PENDING = "BILL_PENDING"
    MEMBERSHIP_EXPIRING = "MEMBERSHIP_EXPIRING"
    MEMBERSHIP_ACTIVATED = "MEMBERSHIP_ACTIVATED"
    GENERAL = "GENERAL"


UNPAID_BILL_STATUSES = frozenset({BillStatus.PENDING, BillStatus.OVERDUE})


class FeePackage(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    amount: Decimal = Field(gt=0)
    duration_months: int = Field(gt=0)
    # Gates new assignments only; members already on the package keep it
    is_active: bool = True


class Member(BaseModel):
    id: str
    # In the Supabase schema this is public.users.id
    user_id: Optional[str] = None
    membership_number: Optional[str] = None
    status: MemberStatus = MemberStatus.INACTIVE
    fee_package_id: Optional[str] = None
    membership_start_date: Optional[UtcDatetime] = None
    membership_end_date: Optional[UtcDatetime] = None


class Bill(BaseModel):
    # Assigned by the store on insert
    id: Optional[str] = None
    member_id: str
    fee_package_id: Optional[str] = None  # None for non-membership charges
    bill_type: BillType = BillType.MEMBERSHIP
    amount: Decimal
    currency: str = "INR"
    due_date: UtcDatetime
    status: BillStatus = BillStatus.PENDING
    paid_date: Optional[UtcDatetime] = None
    generated_date: Optional[UtcDatetime] = None
    paid_by_admin: bool = False
    notes: Optional[str] = None  # e.g. "Whey protein 2kg" for OTHER bills


class Notification(BaseModel):
    id: Optional[str] = None
    member_id: str
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    related_bill_id: Optional[str] = None
    related_package_name: Optional[str] = None
    related_amount: Optional[Decimal] = None
    created_at: Optional[UtcDatetime] = None
