"""Tests for the collection manager: search, ingestion, view and exports."""

import asyncio
import csv
import json
from dataclasses import replace
from datetime import date
from unittest.mock import AsyncMock

import pytest

from card_tracker.core.types import CardRecord, FetchResult, FilterCriteria
from card_tracker.resolve.batch import BatchQueue
from card_tracker.store.backend import MemoryStorage
from card_tracker.store.collection_store import CollectionStore
from card_tracker.ui.manager import CollectionManager, matches_filters, sort_cards
from card_tracker.utils.error_handler import RemoteAPIError


@pytest.fixture
def stocked(manager, pikachu, charizard):
    """Manager holding the Pikachu x3 / Charizard x1 collection."""
    manager.add_card(pikachu)
    manager.add_card(charizard)
    manager.notifier.clear()
    return manager


class TestFilterHelpers:
    def test_name_filter_is_case_insensitive_substring(self, pikachu):
        assert matches_filters(pikachu, FilterCriteria(name="KACH"))
        assert not matches_filters(pikachu, FilterCriteria(name="raichu"))

    def test_type_filter_matches_whole_type_or_supertype(self, pikachu):
        assert matches_filters(pikachu, FilterCriteria(type="lightning"))
        assert not matches_filters(pikachu, FilterCriteria(type="light"))
        trainer = CardRecord(id="t1", name="Professor Oak", supertype="Trainer")
        assert matches_filters(trainer, FilterCriteria(type="trainer"))

    def test_value_bounds_are_inclusive(self, pikachu):
        assert matches_filters(pikachu, FilterCriteria(min_value=2.0, max_value=2.0))
        assert not matches_filters(pikachu, FilterCriteria(min_value=2.01))

    def test_sort_cards_by_date_puts_undated_first(self, pikachu, charizard):
        undated = replace(pikachu, id="x", added_date=None)
        ordered = sort_cards([pikachu, undated, charizard], "date")
        assert [c.id for c in ordered] == ["x", "base1-4", "base1-58"]


class TestCollectionView:
    """Test filtering, sorting and paging of the collection view."""

    def test_load_builds_view(self, stocked):
        assert [c.name for c in stocked.view] == ["Pikachu", "Charizard"]
        assert stocked.view_totals() == (4, pytest.approx(56.0))

    def test_filters_do_not_accumulate(self, stocked):
        assert [c.name for c in stocked.apply_filters(min_value=2, max_value=2)] == ["Pikachu"]
        assert [c.name for c in stocked.apply_filters(min_value=50)] == ["Charizard"]
        assert len(stocked.clear_filters()) == 2

    def test_filters_reset_to_first_page(self, stocked):
        stocked.set_page_size(1)
        stocked.page(2)
        assert stocked.current_page == 2

        stocked.apply_filters(set="base")
        assert stocked.current_page == 1

    def test_inverted_range_is_rejected(self, stocked):
        stocked.apply_filters(name="pika")
        view = stocked.apply_filters(min_value=10, max_value=1)

        assert [c.name for c in view] == ["Pikachu"]
        assert stocked.criteria.name == "pika"
        assert stocked.notifier.last.blocking is True

    def test_caller_criteria_is_left_untouched(self, stocked):
        criteria = FilterCriteria(min_value="5", max_value="60")
        view = stocked.apply_filters(criteria)

        assert [c.name for c in view] == ["Charizard"]
        assert criteria.min_value == "5"
        assert criteria.max_value == "60"
        assert stocked.criteria is not criteria
        assert stocked.criteria.min_value == 5.0

    def test_sort_toggles_direction(self, stocked):
        assert [c.name for c in stocked.sort("value")] == ["Pikachu", "Charizard"]
        assert stocked.sort_order == "asc"
        assert [c.name for c in stocked.sort("value")] == ["Charizard", "Pikachu"]
        assert stocked.sort_order == "desc"
        assert [c.name for c in stocked.sort("name")] == ["Charizard", "Pikachu"]
        assert stocked.sort_order == "asc"

    def test_sort_survives_mutations(self, stocked):
        stocked.sort("name")
        stocked.add_card(CardRecord(id="base1-43", name="Abra", market_value=0.5))
        assert [c.name for c in stocked.view] == ["Abra", "Charizard", "Pikachu"]

    def test_unknown_sort_key(self, stocked):
        stocked.sort("hp")
        assert stocked.sort_key is None
        assert stocked.notifier.last.level == "warning"

    def test_paging(self, manager):
        for i in range(25):
            manager.add_card(CardRecord(id=f"c{i}", name=f"Card {i:02d}"))

        assert manager.total_pages == 2
        assert len(manager.page(1)) == 20
        assert len(manager.page(2)) == 5
        assert len(manager.page(99)) == 5
        assert manager.current_page == 2
        assert manager.page(0)[0].name == "Card 00"

    def test_empty_collection_paging(self, manager):
        assert manager.total_pages == 0
        assert manager.page() == []
        assert manager.current_page == 1

    def test_removing_last_card_on_page_clamps(self, manager):
        for i in range(3):
            manager.add_card(CardRecord(id=f"c{i}", name=f"Card {i}"))
        manager.set_page_size(1)
        manager.page(3)
        manager.remove_card("c2")
        assert manager.current_page == 2

    def test_statistics(self, stocked):
        stats = stocked.statistics()
        assert stats.total.cards == 4
        assert stats.total.value == pytest.approx(56.0)


class TestSearch:
    """Test debounced search and result selection."""

    @pytest.mark.asyncio
    async def test_debounce_only_last_query_searched(self, manager):
        manager.client.search_names = AsyncMock(return_value=FetchResult(["Pikachu"], "api"))

        assert manager.on_search_input("p") is None
        manager.on_search_input("pi")
        manager.on_search_input("pik")
        manager.on_search_input("pika")
        results = await manager.flush_search()

        assert results == ["Pikachu"]
        manager.client.search_names.assert_awaited_once_with("pika")
        assert [e.term for e in manager.store.get_search_history()] == ["pika"]

    @pytest.mark.asyncio
    async def test_debounce_short_query_cancels_pending(self, manager):
        manager.client.search_names = AsyncMock(return_value=FetchResult(["Pikachu"], "api"))

        manager.on_search_input("pika")
        manager.on_search_input("p")

        assert await manager.flush_search() is None
        manager.client.search_names.assert_not_awaited()
        assert manager.search_results == []

    @pytest.mark.asyncio
    async def test_superseded_response_is_dropped(self, manager):
        release = asyncio.Event()

        async def search(query):
            if query == "pik":
                await release.wait()
                return FetchResult(["Pikachu (old)"], "api")
            return FetchResult(["Pikachu"], "api")

        manager.client.search_names = search
        first = asyncio.ensure_future(manager.perform_search("pik"))
        await asyncio.sleep(0)
        await manager.perform_search("pikachu")
        release.set()

        assert await first == []
        assert manager.search_results == ["Pikachu"]

    @pytest.mark.asyncio
    async def test_short_query_warns(self, manager):
        assert await manager.perform_search("p") == []
        assert manager.notifier.last.blocking is True

    @pytest.mark.asyncio
    async def test_search_failure_notice(self, manager):
        manager.client.search_names = AsyncMock(side_effect=RemoteAPIError("API error: 500", status=500))

        assert await manager.perform_search("pika") == []
        assert manager.notifier.last.level == "error"
        assert manager.notifier.last.message == "Search failed: API error: 500"

    @pytest.mark.asyncio
    async def test_stale_results_warn(self, manager):
        manager.client.search_names = AsyncMock(
            return_value=FetchResult(["Pikachu"], "stale_cache", cached=True, error="API error: 503")
        )

        assert await manager.perform_search("pika") == ["Pikachu"]
        assert manager.notifier.last.level == "warning"
        assert "API error: 503" in manager.notifier.last.message

    @pytest.mark.asyncio
    async def test_select_result_loads_sets(self, manager):
        sets = {"Base": {"setName": "Base", "setCode": "base1", "cards": []}}
        manager.client.fetch_by_name = AsyncMock(
            return_value=FetchResult({"name": "Pikachu", "sets": sets, "total": 0}, "api")
        )

        assert await manager.select_result("Pikachu") == sets
        assert manager.selected_name == "Pikachu"
        assert manager.search_query == "Pikachu"

    @pytest.mark.asyncio
    async def test_select_result_empty(self, manager):
        manager.client.fetch_by_name = AsyncMock(
            return_value=FetchResult({"name": "Missingno", "sets": {}, "total": 0}, "api_empty")
        )

        assert await manager.select_result("Missingno") == {}
        assert manager.notifier.last.message == "No cards found for Missingno"

    @pytest.mark.asyncio
    async def test_select_result_failure(self, manager):
        manager.client.fetch_by_name = AsyncMock(side_effect=RemoteAPIError("Network error: reset"))

        assert await manager.select_result("Pikachu") == {}
        assert manager.notifier.last.level == "error"

    @pytest.mark.asyncio
    async def test_prefetch_common_uses_batch_queue(self, manager):
        manager.client.prefetch = AsyncMock(return_value={})
        await manager.prefetch_common()
        assert isinstance(manager.client.prefetch.call_args.kwargs["queue"], BatchQueue)


class TestIngestion:
    """Test building records from API cards and the mutation notices."""

    def test_build_record_uses_market_price(self, manager, sample_card_data):
        record = manager.build_record(sample_card_data, quantity="2", condition="mint")

        assert record.market_value == 350.0
        assert record.quantity == 2
        assert record.condition == "Mint"
        assert record.set_name == "Base"
        assert record.set_code == "base1"
        assert record.set_release_date == "1999/01/09"

    def test_build_record_estimates_unpriced_card(self, manager, sample_card_data):
        card = dict(sample_card_data, tcgplayer=None, cardmarket=None, rarity="Common", name="Pikachu")
        assert manager.build_record(card).market_value == 0.5

    def test_build_record_prefers_attached_estimate(self, manager, sample_card_data):
        card = dict(sample_card_data, tcgplayer=None, cardmarket=None, estimatedValue=4.0)
        record = manager.build_record(card)
        assert record.market_value == 4.0
        assert record.estimated_value == 4.0

    def test_build_record_set_info_overrides(self, manager, sample_card_data):
        record = manager.build_record(sample_card_data, set_info={"setName": "Base Set", "setCode": "bs"})
        assert record.set_name == "Base Set"
        assert record.set_code == "bs"

    def test_add_remote_card(self, manager, sample_card_data):
        collection = manager.add_remote_card(sample_card_data)

        assert [c.id for c in collection.cards] == ["base1-4"]
        assert collection.cards[0].added_date == "2024-01-15T12:00:00+00:00"
        assert manager.notifier.last.message == "Card added to collection!"

    def test_adding_same_card_twice_merges(self, manager, sample_card_data):
        manager.add_remote_card(sample_card_data, quantity=2)
        collection = manager.add_remote_card(sample_card_data, quantity=1)
        assert len(collection.cards) == 1
        assert collection.cards[0].quantity == 3

    def test_add_remote_card_invalid_quantity(self, manager, sample_card_data):
        assert manager.add_remote_card(sample_card_data, quantity=0) is None
        assert manager.collection.cards == []
        assert manager.notifier.last.blocking is True

    def test_add_remote_card_without_selection(self, manager):
        assert manager.add_remote_card({}) is None
        assert manager.notifier.last.level == "warning"

    def test_update_card(self, stocked):
        collection = stocked.update_card("base1-58", {"quantity": "5", "condition": "good", "notes": "binder"})

        card = collection.find("base1-58")
        assert card.quantity == 5
        assert card.condition == "Good"
        assert card.notes == "binder"
        assert stocked.collection.total_count == 2
        assert stocked.collection.total_value == pytest.approx(60.0)
        assert stocked.notifier.last.message == "Card updated successfully!"

    def test_update_card_rejects_bad_input(self, stocked):
        assert stocked.update_card("base1-58", {"quantity": 0}) is None
        assert stocked.collection.find("base1-58").quantity == 3

    def test_update_unknown_card(self, stocked):
        assert stocked.update_card("nope", {"notes": "x"}) is None
        assert stocked.notifier.last.level == "warning"

    def test_remove_card(self, stocked):
        collection = stocked.remove_card("base1-4")
        assert [c.name for c in collection.cards] == ["Pikachu"]
        assert [c.name for c in stocked.view] == ["Pikachu"]
        assert stocked.remove_card("base1-4") is None

    @pytest.mark.asyncio
    async def test_fetch_price_requires_selection(self, manager):
        assert await manager.fetch_price(None) is None
        assert manager.notifier.last.message == "Please select a card first"
        assert manager.notifier.last.blocking is True

    @pytest.mark.asyncio
    async def test_fetch_price_updates_collected_card(self, stocked):
        remote = {"id": "base1-58", "tcgplayer": {"prices": {"normal": {"market": 3.5}}}}
        stocked.client.fetch_by_id = AsyncMock(return_value=FetchResult(remote, "api"))

        assert await stocked.fetch_price("base1-58") == 3.5
        assert stocked.collection.find("base1-58").market_value == 3.5
        assert stocked.notifier.last.message == "Market price updated: $3.50"

    @pytest.mark.asyncio
    async def test_fetch_price_without_market_data(self, stocked):
        stocked.client.fetch_by_id = AsyncMock(return_value=FetchResult({"id": "base1-58"}, "api"))

        assert await stocked.fetch_price("base1-58") is None
        assert stocked.collection.find("base1-58").market_value == 2.0

    @pytest.mark.asyncio
    async def test_fetch_price_failure(self, stocked):
        stocked.client.fetch_by_id = AsyncMock(side_effect=RemoteAPIError("API error: 404", status=404))

        assert await stocked.fetch_price("base1-58") is None
        assert stocked.notifier.last.level == "error"


class TestExportImport:
    """Test exports to disk and importing a bundle back."""

    TODAY = date(2024, 1, 15)

    def test_export_empty_collection_warns(self, manager, tmp_path):
        assert manager.export("csv", tmp_path) is None
        assert manager.notifier.last.message == "No data to export"
        assert list(tmp_path.iterdir()) == []

    def test_export_unknown_format(self, stocked, tmp_path):
        assert stocked.export("xlsx", tmp_path) is None
        assert stocked.notifier.last.blocking is True

    def test_export_csv(self, stocked, tmp_path):
        path = stocked.export("csv", tmp_path, today=self.TODAY)

        assert path.name == "pokemon-collection-2024-01-15.csv"
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["Name"] for r in rows] == ["Pikachu", "Charizard"]
        assert stocked.notifier.last.message == "CSV exported successfully!"

    def test_export_dir_that_cannot_be_created(self, stocked, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        assert stocked.export("csv", blocker / "exports", today=self.TODAY) is None
        assert stocked.notifier.last.level == "error"
        assert "Cannot create export directory" in stocked.notifier.last.message

    @pytest.mark.parametrize("fmt,suffix,marker", [
        ("pdf", "pdf.html", "Estimated Collection Value: $56.00"),
        ("print", "print.html", "Total Cards (including duplicates): 4"),
    ])
    def test_export_html(self, stocked, tmp_path, fmt, suffix, marker):
        path = stocked.export(fmt, tmp_path, today=self.TODAY)

        assert path.name == f"pokemon-collection-2024-01-15.{suffix}"
        assert marker in path.read_text(encoding="utf-8")

    def test_export_json_then_import_integration(self, stocked, tmp_path, client, fixed_clock):
        stocked.save_settings({"theme": "dark"})
        path = stocked.export("json", tmp_path, today=self.TODAY)

        bundle = json.loads(path.read_text(encoding="utf-8"))
        assert bundle["metadata"]["totalCards"] == 2
        assert bundle["settings"]["theme"] == "dark"

        fresh_store = CollectionStore(MemoryStorage(), clock=fixed_clock)
        fresh_store.initialize()
        fresh = CollectionManager(fresh_store, client, page_size=20, debounce_ms=10)
        fresh.load()

        collection = fresh.import_file(path)
        assert [c.name for c in collection.cards] == ["Pikachu", "Charizard"]
        assert collection.total_value == pytest.approx(56.0)
        assert fresh.load_settings()["theme"] == "dark"
        assert [c.name for c in fresh.view] == ["Pikachu", "Charizard"]
        assert fresh.notifier.last.message == "Imported 2 cards"

    def test_import_invalid_bundle_changes_nothing(self, stocked, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"collection": {"cards": []}}), encoding="utf-8")

        assert stocked.import_file(bad) is None
        assert len(stocked.store.load_collection().cards) == 2
        assert stocked.notifier.last.message.startswith("Import failed:")

    def test_import_missing_file(self, stocked, tmp_path):
        assert stocked.import_file(tmp_path / "missing.json") is None
        assert stocked.notifier.last.level == "error"


class TestSettingsAndShare:
    def test_share_message(self, stocked):
        assert stocked.share_message() == (
            "My Pokémon card collection has 2 cards worth $56.00! Track yours at"
        )

    def test_settings_round_trip(self, manager):
        assert manager.load_settings()["currency"] == "USD"
        updated = manager.save_settings({"currency": "EUR"})
        assert updated["currency"] == "EUR"
        assert updated["showPrices"] is True
        assert manager.load_settings()["currency"] == "EUR"
