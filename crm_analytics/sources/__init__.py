"""
Storefront CRM Analytics
Report Data Sources
"""
from .base import ReportDataSource
from .database import DatabaseDataSource
from .memory import InMemoryDataSource

__all__ = ["ReportDataSource", "DatabaseDataSource", "InMemoryDataSource"]
