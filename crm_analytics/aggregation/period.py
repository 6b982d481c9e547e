"""
Reporting Periods

Resolves the inclusive calendar-date range picked on the dashboard into the
instants used to query orders, plus the preceding window of equal length used
for period-over-period comparison.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

from crm_analytics.models.records import OrderStatus

ONE_DAY = timedelta(days=1)
ONE_MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive [start, end] instant range"""
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


@dataclass(frozen=True)
class ReportingPeriod:
    """
    Inclusive date range [date_from, date_to] with an optional status filter.

    Example:
        period = ReportingPeriod(date(2025, 1, 1), date(2025, 1, 7))
        window = period.window(tz)
        previous = period.previous_window(tz)
    """
    date_from: date
    date_to: date
    status: Optional[OrderStatus] = None

    def __post_init__(self):
        if self.date_to < self.date_from:
            raise ValueError(
                f"date_to ({self.date_to}) must not be before date_from ({self.date_from})"
            )
        if self.status is not None and not isinstance(self.status, OrderStatus):
            object.__setattr__(self, "status", OrderStatus(self.status))

    @classmethod
    def last_days(
        cls,
        days: int,
        today: Optional[date] = None,
        status: Optional[OrderStatus] = None,
        tz: Optional[tzinfo] = None,
    ) -> "ReportingPeriod":
        """Period ending today (in `tz`, host time when omitted) and starting `days` days earlier"""
        today = today or datetime.now(tz).date()
        return cls(today - timedelta(days=days), today, status)

    def window(self, tz: tzinfo) -> TimeWindow:
        start = datetime.combine(self.date_from, time.min, tzinfo=tz)
        end = datetime.combine(self.date_to, time.max, tzinfo=tz)
        return TimeWindow(start, end)

    def length_days(self, tz: tzinfo) -> int:
        current = self.window(tz)
        return math.ceil((current.end - current.start) / ONE_DAY)

    def previous_window(self, tz: tzinfo) -> TimeWindow:
        """Window of identical length ending the instant before this one starts"""
        current = self.window(tz)
        days = self.length_days(tz)
        return TimeWindow(
            start=current.start - timedelta(days=days),
            end=current.start - ONE_MICROSECOND,
        )

    @property
    def status_value(self) -> Optional[str]:
        return self.status.value if self.status is not None else None
