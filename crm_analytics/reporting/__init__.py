"""
Storefront CRM Analytics
Tabular Reporting Module
"""
from .export import (
    ExportArtifact,
    ExportFormat,
    FileDelivery,
    LocalDirectoryDelivery,
    PrintSurface,
    ReportExporter,
)
from .grid import (
    ALL,
    Column,
    DataGrid,
    FilterOption,
    SortDirection,
    SortState,
    filter_rows,
    search_rows,
    sort_rows,
)

__all__ = [
    "ALL",
    "Column",
    "DataGrid",
    "FilterOption",
    "SortDirection",
    "SortState",
    "filter_rows",
    "search_rows",
    "sort_rows",
    "ExportArtifact",
    "ExportFormat",
    "FileDelivery",
    "LocalDirectoryDelivery",
    "PrintSurface",
    "ReportExporter",
]
