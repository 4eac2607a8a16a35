"""
Adapters layer - Resource and booking stores.
"""

from .memory_store import ConfigResourceStore, InMemoryBookingStore
from .sql_store import SqlBookingStore, build_engine

__all__ = ["ConfigResourceStore", "InMemoryBookingStore", "SqlBookingStore", "build_engine"]
