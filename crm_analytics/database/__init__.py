"""
Storefront CRM Analytics
Database Module
"""
from .connection import (
    check_database_health,
    close_database,
    create_session_factory,
    create_tables,
    get_db,
    get_engine,
    get_session_factory,
    init_database,
)

__all__ = [
    "check_database_health",
    "close_database",
    "create_session_factory",
    "create_tables",
    "get_db",
    "get_engine",
    "get_session_factory",
    "init_database",
]
