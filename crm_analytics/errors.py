"""
Reporting Errors

Exception hierarchy shared by the aggregation, reporting and serving layers.
"""

from typing import Iterable, Tuple


class ReportingError(Exception):
    """Base class for all reporting failures"""


class AggregationError(ReportingError):
    """An aggregation run failed and produced no snapshot"""


class SourceFetchError(AggregationError):
    """One or more required input collections failed to load"""

    def __init__(self, collections: Iterable[str], cause: Exception = None):
        self.collections: Tuple[str, ...] = tuple(collections)
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to load {', '.join(self.collections)}{detail}")


class EmptyExportError(ReportingError):
    """Export requested on a view with no rows"""

    def __init__(self, report: str = "report"):
        self.report = report
        super().__init__(f"No data to export for {report}")


class UnknownReportError(ReportingError):
    """Requested report view does not exist"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown report: {name}")
