from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class FrozenClock:
    """
    Clock that only moves when told to.

    Used by tests and by one-off admin runs ("sweep as of date X").
    Naive datetimes are taken to be UTC.
    """

    _frozen_now: Optional[datetime] = None

    def now(self) -> datetime:
        if self._frozen_now is None:
            self._frozen_now = datetime.now(timezone.utc)
        return self._frozen_now

    def freeze_at(self, dt: datetime) -> None:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        self._frozen_now = dt.astimezone(timezone.utc)

    def advance(self, delta: timedelta) -> None:
        self._frozen_now = self.now() + delta
