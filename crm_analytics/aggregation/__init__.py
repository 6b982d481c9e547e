"""
Storefront CRM Analytics
Aggregation Module
"""
from .engine import AggregationEngine, ReportInputs
from .period import ReportingPeriod, TimeWindow

__all__ = ["AggregationEngine", "ReportInputs", "ReportingPeriod", "TimeWindow"]
