"""
Storefront CRM Analytics
Realtime Recomputation Module
"""
from .change_feed import ChangeFeed, InMemoryChangeFeed, KafkaChangeFeed, TableChange
from .controller import ControllerState, RecomputationController, WATCHED_TABLES

__all__ = [
    "ChangeFeed",
    "InMemoryChangeFeed",
    "KafkaChangeFeed",
    "TableChange",
    "ControllerState",
    "RecomputationController",
    "WATCHED_TABLES",
]
