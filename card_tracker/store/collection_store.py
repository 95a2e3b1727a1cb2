"""Persistent store for the collection, settings and search history."""

import json
from dataclasses import dataclass, asdict, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.constants import (
    CACHE_VERSION,
    COLLECTION_KEY,
    DEFAULT_CONDITION,
    DEFAULT_LANGUAGE,
    DEFAULT_SETTINGS,
    EXPORT_VERSION,
    LEGACY_COLLECTION_KEY,
    LEGACY_KEY_PREFIX,
    LEGACY_KEYS,
    SEARCH_HISTORY_KEY,
    SEARCH_HISTORY_LIMIT,
    SETTINGS_KEY,
)
from ..core.types import CardRecord, Collection, SearchHistoryEntry
from ..stats.engine import collection_totals
from ..utils.error_handler import (
    ErrorContext,
    ImportDataError,
    InvalidInputError,
    StorageError,
    handle_error,
    safe_execute,
)
from ..utils.log import get_logger
from ..utils.validation import validate_card_payload, validate_import_bundle
from .backend import KeyValueStorage, MemoryStorage


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StoreStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    clears: int = 0


class CollectionStore:
    """Owns the collection; every mutation returns the fresh ``Collection``.

    Callers must adopt the returned collection instead of patching a copy
    they already hold. Storage failures are logged and turned into safe
    defaults; nothing here raises to the caller except ``import_data_or_raise``.
    """

    def __init__(self, storage: KeyValueStorage, clock: Callable[[], str] = utc_now_iso):
        self.logger = get_logger(__name__)
        self.storage = storage
        self.clock = clock
        self.stats = StoreStats()

    # -- lifecycle ---------------------------------------------------------

    def initialize(self) -> None:
        """Migrate legacy keys, then create the empty collection and default settings."""
        context = ErrorContext(operation="initialize", module="collection_store", function="is_available")
        if not safe_execute(self.storage.is_available, context=context, logger=self.logger, default_return=False):
            self.logger.warning("Storage not available, falling back to memory")
            self.storage = MemoryStorage()

        self.migrate_legacy_data()

        if self._read_json(COLLECTION_KEY) is None:
            self.save_collection([])

        if self.load_settings() is None:
            self.save_settings(dict(DEFAULT_SETTINGS))

        self.logger.info("Store initialized", version=CACHE_VERSION)

    def migrate_legacy_data(self) -> List[str]:
        """Move unversioned data to the versioned keys; one bad key never blocks the rest."""
        migrated: List[str] = []
        for legacy_key in LEGACY_KEYS:
            try:
                raw = self.storage.get_item(legacy_key)
                if raw is None:
                    continue
                parsed = json.loads(raw)

                if legacy_key == LEGACY_COLLECTION_KEY and isinstance(parsed, list):
                    now = self.clock()
                    cards = []
                    for item in parsed:
                        if not isinstance(item, dict):
                            continue
                        item = dict(item)
                        item["addedDate"] = item.get("addedDate") or now
                        item["quantity"] = item.get("quantity") or 1
                        cards.append(CardRecord.from_dict(item))
                    if not self.save_collection(cards):
                        raise StorageError("Could not write migrated collection")

                self.storage.remove_item(legacy_key)
                migrated.append(legacy_key)
                self.logger.info("Migrated legacy data", key=legacy_key)
            except (ValueError, StorageError) as e:
                self.logger.warning("Failed to migrate legacy key", key=legacy_key, error=str(e))
        return migrated

    # -- raw access --------------------------------------------------------

    def _read_json(self, key: str) -> Any:
        raw = self.storage.get_item(key)
        if raw is None:
            return None
        return json.loads(raw)

    def _write_json(self, key: str, value: Any) -> None:
        self.storage.set_item(key, json.dumps(value))
        self.stats.writes += 1

    # -- collection --------------------------------------------------------

    def save_collection(self, cards: Sequence[CardRecord]) -> bool:
        """Recompute the aggregates and write the collection under one key."""
        cards = list(cards or [])
        total_count, total_value = collection_totals(cards)
        collection = Collection(
            cards=cards,
            version=CACHE_VERSION,
            last_updated=self.clock(),
            total_count=total_count,
            total_value=total_value,
        )
        try:
            self._write_json(COLLECTION_KEY, collection.to_dict())
            return True
        except (StorageError, TypeError, ValueError) as e:
            self.logger.error("Failed to save collection", error=str(e), cards=len(cards))
            return False

    def load_collection(self) -> Collection:
        """Current collection; an empty one on missing or unreadable data."""
        try:
            data = self._read_json(COLLECTION_KEY)
        except (StorageError, ValueError) as e:
            self.logger.warning("Failed to load collection", error=str(e))
            return Collection()

        if data is None:
            self.stats.misses += 1
            return Collection()

        if not isinstance(data, dict) or not isinstance(data.get("cards"), list):
            self.logger.warning("Invalid collection structure, resetting")
            return Collection()

        try:
            collection = Collection.from_dict(data)
        except (TypeError, ValueError) as e:
            self.logger.warning("Unreadable collection data, resetting", error=str(e))
            return Collection()
        self.stats.hits += 1
        return collection

    def add_card(self, card: CardRecord) -> Collection:
        """Add a card, or bump the quantity of the entry it matches."""
        collection = self.load_collection()
        existing = next((c for c in collection.cards if c.same_card(card)), None)

        if existing is not None:
            existing.quantity = existing.quantity + (card.quantity or 1)
            existing.last_updated = self.clock()
            self.logger.debug("Merged duplicate card", card_id=existing.id, quantity=existing.quantity)
        else:
            collection.cards.append(replace(
                card,
                added_date=self.clock(),
                quantity=card.quantity or 1,
                condition=card.condition or DEFAULT_CONDITION,
                language=card.language or DEFAULT_LANGUAGE,
                notes=card.notes or "",
            ))
            self.logger.debug("Added card", card_id=card.id, name=card.name)

        self.save_collection(collection.cards)
        return self.load_collection()

    def update_card(self, card_id: str, updates: Dict[str, Any]) -> Optional[Collection]:
        """Merge camelCase ``updates`` into a card; None when the id is unknown."""
        collection = self.load_collection()
        for index, card in enumerate(collection.cards):
            if card.id == card_id:
                merged = {**card.to_dict(), **updates, "lastUpdated": self.clock()}
                collection.cards[index] = CardRecord.from_dict(merged)
                self.save_collection(collection.cards)
                return self.load_collection()

        self.logger.debug("Card not found for update", card_id=card_id)
        return None

    def remove_card(self, card_id: str) -> Optional[Collection]:
        """Remove a card; None when nothing matched."""
        collection = self.load_collection()
        remaining = [c for c in collection.cards if c.id != card_id]
        if len(remaining) == len(collection.cards):
            return None
        self.save_collection(remaining)
        return self.load_collection()

    def clear_collection(self) -> bool:
        try:
            self.storage.remove_item(COLLECTION_KEY)
        except StorageError as e:
            self.logger.error("Failed to clear collection", error=str(e))
            return False
        self.stats.clears += 1
        return True

    # -- settings ----------------------------------------------------------

    def load_settings(self) -> Optional[Dict[str, Any]]:
        try:
            data = self._read_json(SETTINGS_KEY)
        except (StorageError, ValueError) as e:
            self.logger.error("Failed to load settings", error=str(e))
            return None
        if data is None or not isinstance(data, dict):
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return data

    def save_settings(self, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge ``partial`` over the stored settings; None on failure."""
        updated = {**(self.load_settings() or {}), **partial, "lastUpdated": self.clock()}
        try:
            self._write_json(SETTINGS_KEY, updated)
        except (StorageError, TypeError, ValueError) as e:
            self.logger.error("Failed to save settings", error=str(e))
            return None
        return updated

    # -- search history ----------------------------------------------------

    def get_search_history(self) -> List[SearchHistoryEntry]:
        try:
            data = self._read_json(SEARCH_HISTORY_KEY)
        except (StorageError, ValueError) as e:
            self.logger.error("Failed to get search history", error=str(e))
            return []
        if not isinstance(data, list):
            return []
        return [
            SearchHistoryEntry(term=str(item.get("term", "")), timestamp=str(item.get("timestamp", "")))
            for item in data
            if isinstance(item, dict) and item.get("term")
        ]

    def add_search_term(self, term: str) -> List[SearchHistoryEntry]:
        """Put ``term`` at the front, dropping older copies and keeping 50 entries."""
        history = [entry for entry in self.get_search_history() if entry.term != term]
        history.insert(0, SearchHistoryEntry(term=term, timestamp=self.clock()))
        history = history[:SEARCH_HISTORY_LIMIT]
        try:
            self._write_json(SEARCH_HISTORY_KEY, [entry.to_dict() for entry in history])
        except StorageError as e:
            self.logger.error("Failed to update search history", error=str(e))
            return []
        return history

    def clear_search_history(self) -> bool:
        try:
            self.storage.remove_item(SEARCH_HISTORY_KEY)
        except StorageError as e:
            self.logger.error("Failed to clear search history", error=str(e))
            return False
        return True

    # -- bulk --------------------------------------------------------------

    def export_all_data(self) -> Optional[str]:
        """JSON bundle of collection, settings and history."""
        try:
            collection = self.load_collection()
            data = {
                "collection": collection.to_dict(),
                "settings": self.load_settings(),
                "searchHistory": [entry.to_dict() for entry in self.get_search_history()],
                "metadata": {
                    "exportedAt": self.clock(),
                    "version": EXPORT_VERSION,
                    "totalCards": len(collection.cards),
                    "totalValue": collection.total_value,
                },
            }
            return json.dumps(data, indent=2)
        except (TypeError, ValueError) as e:
            context = ErrorContext(operation="export_all_data", module="collection_store", function="export_all_data")
            return handle_error(e, context, self.logger, reraise=False, default_return=None)

    def import_data_or_raise(self, text: str) -> Collection:
        """Validate a bundle, then replace collection, settings and history."""
        data = validate_import_bundle(text)
        cards = []
        for index, item in enumerate(data["collection"].get("cards", [])):
            try:
                cards.append(CardRecord.from_dict(validate_card_payload(item)))
            except InvalidInputError as e:
                raise ImportDataError(
                    f"Invalid card at position {index + 1}: {e.message}",
                    details={"index": index, **e.details}
                )
            except (TypeError, ValueError) as e:
                raise ImportDataError(
                    f"Invalid card at position {index + 1}",
                    details={"index": index, "error": str(e)}
                )

        settings = dict(data["settings"])
        if not self.save_collection(cards):
            raise ImportDataError("Could not write imported collection")
        try:
            self._write_json(SETTINGS_KEY, settings)
        except StorageError as e:
            self.logger.error("Failed to import settings", error=str(e))
        history = data.get("searchHistory")
        if isinstance(history, list):
            try:
                self._write_json(SEARCH_HISTORY_KEY, history[:SEARCH_HISTORY_LIMIT])
            except StorageError as e:
                self.logger.error("Failed to import search history", error=str(e))
        self.logger.info("Imported data", cards=len(cards))
        return self.load_collection()

    def import_data(self, text: str) -> bool:
        try:
            self.import_data_or_raise(text)
            return True
        except ImportDataError as e:
            self.logger.error("Failed to import data", error=e.message)
            return False

    def clear_all(self) -> bool:
        """Remove every tracker key, including old ``pokemon_tracker_*`` ones."""
        try:
            for key in (COLLECTION_KEY, SETTINGS_KEY, SEARCH_HISTORY_KEY):
                self.storage.remove_item(key)
            for key in self.storage.keys():
                if LEGACY_KEY_PREFIX in key:
                    self.storage.remove_item(key)
        except StorageError as e:
            self.logger.error("Failed to clear storage", error=str(e))
            return False
        self.stats.clears += 1
        return True

    def get_stats(self) -> Dict[str, int]:
        return asdict(self.stats)
