"""
Metrics Primitives Module
"""
from .primitives import as_utc, clamp_percent, date_bucket_key, percent_change, safe_ratio

__all__ = [
    "as_utc",
    "clamp_percent",
    "date_bucket_key",
    "percent_change",
    "safe_ratio",
]
