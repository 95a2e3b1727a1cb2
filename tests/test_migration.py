"""Tests for migration of unversioned legacy data."""

import json

from card_tracker.core.constants import COLLECTION_KEY
from card_tracker.store.backend import MemoryStorage
from card_tracker.store.collection_store import CollectionStore


class TestLegacyMigration:
    """Test moving old keys into the versioned layout."""

    def test_legacy_cards_are_migrated(self, fixed_clock):
        storage = MemoryStorage({
            "pokemonCards": json.dumps([
                {"id": "base1-58", "name": "Pikachu", "marketValue": 2.0},
                {"id": "base1-4", "name": "Charizard", "quantity": 2, "addedDate": "2020-05-01T00:00:00Z"},
            ])
        })
        store = CollectionStore(storage, clock=fixed_clock)
        store.initialize()

        assert storage.get_item("pokemonCards") is None
        cards = store.load_collection().cards
        assert [c.name for c in cards] == ["Pikachu", "Charizard"]
        assert cards[0].quantity == 1
        assert cards[0].added_date == "2024-01-15T12:00:00+00:00"
        assert cards[1].quantity == 2
        assert cards[1].added_date == "2020-05-01T00:00:00Z"

    def test_other_legacy_keys_are_removed(self, fixed_clock):
        storage = MemoryStorage({
            "pokemon_collection": json.dumps({"cards": []}),
            "pokemon_tracker_settings": json.dumps({"theme": "dark"}),
        })
        migrated = CollectionStore(storage, clock=fixed_clock).migrate_legacy_data()
        assert migrated == ["pokemon_collection", "pokemon_tracker_settings"]
        assert storage.get_item("pokemon_collection") is None

    def test_corrupt_key_does_not_block_others(self, fixed_clock):
        storage = MemoryStorage({
            "pokemon_collection": "{corrupt",
            "pokemonCards": json.dumps([{"id": "base1-58", "name": "Pikachu"}]),
        })
        store = CollectionStore(storage, clock=fixed_clock)
        migrated = store.migrate_legacy_data()

        assert migrated == ["pokemonCards"]
        # the corrupt key stays put for a later attempt
        assert storage.get_item("pokemon_collection") == "{corrupt"
        assert len(store.load_collection().cards) == 1

    def test_nothing_to_migrate(self, fixed_clock):
        store = CollectionStore(MemoryStorage(), clock=fixed_clock)
        assert store.migrate_legacy_data() == []
        assert store.storage.get_item(COLLECTION_KEY) is None
