"""Tests for collection statistics."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from card_tracker.core.types import CardRecord, GroupTotals
from card_tracker.stats.engine import (
    collection_totals,
    compute_statistics,
    parse_timestamp,
    top_groups,
)

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestComputeStatistics:
    """Test the aggregation pass."""

    def test_worked_example(self, pikachu, charizard):
        """Pikachu x3 at 2.00 plus Charizard x1 at 50.00."""
        stats = compute_statistics([pikachu, charizard], now=NOW)

        assert stats.total.cards == 4
        assert stats.total.unique == 2
        assert stats.total.value == pytest.approx(56.0)
        assert [(c.name, c.value) for c in stats.top_cards] == [("Charizard", 50.0), ("Pikachu", 2.0)]
        assert stats.top_cards[1].total_value == pytest.approx(6.0)

    def test_empty_collection(self):
        stats = compute_statistics([], now=NOW)
        assert stats.total.cards == 0
        assert stats.total.value == 0
        assert stats.top_cards == []
        assert stats.by_set == {}

    def test_recent_window(self, pikachu, charizard):
        stats = compute_statistics([pikachu, charizard], now=NOW)
        # pikachu added 5 days earlier, charizard months ago
        assert stats.recent.added == 1
        assert stats.recent.cards == 3
        assert stats.recent.value == pytest.approx(6.0)

    def test_recent_boundary_is_inclusive(self, pikachu):
        card = replace(pikachu, added_date="2023-12-16T12:00:00+00:00")
        assert compute_statistics([card], now=NOW).recent.added == 1

    def test_missing_added_date_counts_as_recent(self, pikachu):
        card = replace(pikachu, added_date=None)
        assert compute_statistics([card], now=NOW).recent.added == 1

    def test_unpriced_cards_are_not_top_cards(self, pikachu):
        free = CardRecord(id="e1", name="Energy", quantity=10)
        stats = compute_statistics([free, pikachu], now=NOW)
        assert [c.name for c in stats.top_cards] == ["Pikachu"]
        assert stats.total.cards == 13

    def test_top_cards_limited_and_stable(self):
        cards = [CardRecord(id=str(i), name=f"Card {i}", market_value=1.0) for i in range(12)]
        stats = compute_statistics(cards, now=NOW)
        assert len(stats.top_cards) == 10
        assert [c.name for c in stats.top_cards] == [f"Card {i}" for i in range(10)]

    def test_by_type_counts_each_type(self):
        card = CardRecord(id="x", name="Dual", types=["Fire", "Flying"], market_value=4.0, quantity=2)
        stats = compute_statistics([card], now=NOW)
        assert stats.by_type["Fire"].count == 2
        assert stats.by_type["Flying"].value == pytest.approx(8.0)

    def test_rarity_and_set_fallbacks(self):
        card = CardRecord(id="x", name="Mystery", market_value=1.0)
        stats = compute_statistics([card], now=NOW)
        assert stats.by_rarity["Unknown"].count == 1
        assert stats.by_set["Unknown Set"].cards == [card]

    def test_set_groups_list_members(self, pikachu, charizard):
        stats = compute_statistics([pikachu, charizard], now=NOW)
        base = stats.by_set["Base"]
        assert base.count == 4
        assert [c.name for c in base.cards] == ["Pikachu", "Charizard"]

    def test_price_fallback_used_for_value(self):
        card = CardRecord(id="x", name="Eevee", tcgplayer={"prices": {"holofoil": {"market": 7.5}}})
        assert compute_statistics([card], now=NOW).total.value == pytest.approx(7.5)


class TestHelpers:
    def test_collection_totals(self, pikachu, charizard):
        assert collection_totals([pikachu, charizard]) == (2, pytest.approx(56.0))

    def test_top_groups_orders_by_count(self):
        groups = {"Fire": GroupTotals(2, 1.0), "Water": GroupTotals(5, 1.0), "Grass": GroupTotals(3, 9.0)}
        assert [name for name, _ in top_groups(groups)] == ["Water", "Grass", "Fire"]
        assert len(top_groups(groups, limit=1)) == 1

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-15T12:00:00Z", NOW),
        ("2024-01-15T12:00:00+00:00", NOW),
        ("2024-01-15T12:00:00", NOW),
        ("", None),
        (None, None),
        ("yesterday", None),
    ])
    def test_parse_timestamp(self, value, expected):
        assert parse_timestamp(value) == expected
