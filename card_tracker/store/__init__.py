"""Storage package for the collection and its exports."""

from .backend import KeyValueStorage, MemoryStorage, SQLiteStorage
from .collection_store import CollectionStore
from .writer import CSVExporter

__all__ = ["KeyValueStorage", "MemoryStorage", "SQLiteStorage", "CollectionStore", "CSVExporter"]
