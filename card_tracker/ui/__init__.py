"""Front-end state: notices, debounced search and the collection manager."""

from .debounce import Debouncer, SequenceGuard
from .manager import CollectionManager
from .notifier import Notice, Notifier

__all__ = ["CollectionManager", "Debouncer", "SequenceGuard", "Notice", "Notifier"]
