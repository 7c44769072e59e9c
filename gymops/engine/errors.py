from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    MEMBER_NOT_FOUND = "MemberNotFound"
    PACKAGE_NOT_FOUND = "PackageNotFound"
    PACKAGE_INACTIVE = "PackageInactive"
    BILL_NOT_FOUND = "BillNotFound"
    BILL_ALREADY_PAID = "BillAlreadyPaid"
    INVALID_TRANSITION = "InvalidTransition"
    STORE_UNAVAILABLE = "StoreUnavailable"


class LifecycleError(Exception):
    """
    Raised by the decision functions when an event cannot apply to a snapshot.

    Never escapes `LifecycleService`; it is turned into a result carrying `kind`.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"
