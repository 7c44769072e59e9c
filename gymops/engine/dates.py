from __future__ import annotations

import calendar
from datetime import datetime


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, keeping time of day and tzinfo.

    When the day does not exist in the target month it is clamped to that
    month's last day: Jan 31 + 1 month is Feb 28 (Feb 29 in leap years).
    """
    month0 = value.month - 1 + months
    year = value.year + month0 // 12
    month = month0 % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
