"""
Storage Layer.

This package handles all data persistence, including the configuration file,
the entitlement cache, the selected apps list and the depot success store.
"""

from .config_manager import ConfigManager
from .entitlements import EntitlementCache
from .selection import SelectionStore
from .success_store import InMemoryDepotSuccessStore, SqliteDepotSuccessStore

__all__ = [
    "ConfigManager",
    "EntitlementCache",
    "InMemoryDepotSuccessStore",
    "SelectionStore",
    "SqliteDepotSuccessStore",
]
