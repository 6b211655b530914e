# inspection_engine/domain/cadence.py
from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Optional

from .enums import InspectionStatus

DEFAULT_INTERVAL_MONTHS = 6

# Reaching either status counts as the property having been inspected.
TRACKED_STATUSES = frozenset({InspectionStatus.COMPLETED.value, InspectionStatus.FINALIZED.value})


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's length (Aug 31 + 6 = Feb 28/29)."""
    idx = d.month - 1 + int(months)
    year = d.year + idx // 12
    month = idx % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_inspection_due(inspected_at: datetime, interval_months: Optional[int]) -> date:
    months = interval_months if interval_months and interval_months > 0 else DEFAULT_INTERVAL_MONTHS
    return add_months(inspected_at.date(), months)
