"""Database management for autopress."""

from .articles import ArticleStorage
from .connection import open_pool, store_connection
from .init import init_database, validate_connection
from .runs import RunManager
from .settings import SettingsManager
from .sources import SourceManager
from .store import ArticleStore, RunStore, SettingsStore, SourceStore

__all__ = [
    "ArticleStorage",
    "ArticleStore",
    "RunManager",
    "RunStore",
    "SettingsManager",
    "SettingsStore",
    "SourceManager",
    "SourceStore",
    "init_database",
    "open_pool",
    "store_connection",
    "validate_connection",
]
