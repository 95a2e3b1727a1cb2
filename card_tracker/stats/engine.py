"""Collection statistics.

Everything is recomputed from a full snapshot on each call. Card values come
from :func:`card_tracker.pricing.poketcg_prices.card_value`; estimates are
applied when a card is added, never here.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..core.constants import (
    RECENT_WINDOW_DAYS,
    TOP_CARDS_LIMIT,
    UNKNOWN_RARITY,
    UNKNOWN_SET,
)
from ..core.types import (
    CardRecord,
    GroupTotals,
    SetGroup,
    Statistics,
    TopCard,
)
from ..pricing.poketcg_prices import card_value

G = TypeVar("G", bound=GroupTotals)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp into an aware datetime (naive means UTC)."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def collection_totals(cards: Iterable[CardRecord]) -> Tuple[int, float]:
    """(unique entries, total value) as persisted alongside the collection."""
    count = 0
    value = 0.0
    for card in cards:
        count += 1
        value += card_value(card) * card.quantity
    return count, value


def compute_statistics(
    cards: Sequence[CardRecord],
    now: Optional[datetime] = None,
    recent_days: int = RECENT_WINDOW_DAYS,
    top_limit: int = TOP_CARDS_LIMIT,
) -> Statistics:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    window = timedelta(days=recent_days)

    stats = Statistics()
    stats.total.unique = len(cards)
    top: List[TopCard] = []

    for card in cards:
        value = card_value(card)
        quantity = card.quantity
        line_value = value * quantity

        stats.total.cards += quantity
        stats.total.value += line_value

        # cards without a usable added date count as just added
        added = parse_timestamp(card.added_date) or now
        if now - added <= window:
            stats.recent.cards += quantity
            stats.recent.value += line_value
            stats.recent.added += 1

        if value > 0:
            top.append(TopCard(
                name=card.name,
                value=value,
                quantity=quantity,
                total_value=line_value,
                rarity=card.rarity,
                set_name=card.set_name or None,
            ))

        for card_type in card.types:
            group = stats.by_type.setdefault(card_type, GroupTotals())
            group.count += quantity
            group.value += line_value

        rarity_group = stats.by_rarity.setdefault(card.rarity or UNKNOWN_RARITY, GroupTotals())
        rarity_group.count += quantity
        rarity_group.value += line_value

        set_group = stats.by_set.setdefault(card.set_name or UNKNOWN_SET, SetGroup())
        set_group.count += quantity
        set_group.value += line_value
        set_group.cards.append(card)

    # sorted() is stable, equal values keep collection order
    stats.top_cards = sorted(top, key=lambda c: c.value, reverse=True)[:top_limit]
    return stats


def top_groups(groups: Dict[str, G], limit: Optional[int] = None) -> List[Tuple[str, G]]:
    """Groups ordered by owned count, largest first."""
    ordered = sorted(groups.items(), key=lambda item: item[1].count, reverse=True)
    return ordered[:limit] if limit is not None else ordered
