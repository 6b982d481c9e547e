"""
Metrics Primitives

Numeric helpers shared by every rollup on the CRM dashboard.
"""

import math
from datetime import datetime, timezone, tzinfo
from typing import Optional, Union

Number = Union[int, float]


def safe_ratio(numerator: Number, denominator: Number) -> float:
    """
    Divide without ever producing NaN or infinity.

    Returns 0 when the denominator is zero or the quotient is not finite.
    """
    if denominator == 0:
        return 0.0
    result = numerator / denominator
    if not math.isfinite(result):
        return 0.0
    return float(result)


def percent_change(current: Number, previous: Number) -> float:
    """Period-over-period change in percent; 0 when there is no baseline."""
    if previous == 0:
        return 0.0
    return safe_ratio(current - previous, previous) * 100


def clamp_percent(value: Number) -> float:
    """Clamp a percentage into [0, 100]."""
    if not math.isfinite(value):
        return 0.0
    return float(min(100.0, max(0.0, value)))


def as_utc(instant: datetime) -> datetime:
    """Naive instants are taken to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def date_bucket_key(instant: datetime, tz: Optional[tzinfo] = None) -> str:
    """
    Calendar-day key (YYYY-MM-DD) of an instant in the reporting timezone.

    Two instants on the same local calendar day map to the same key.
    """
    local = as_utc(instant).astimezone(tz or timezone.utc)
    return local.date().isoformat()
