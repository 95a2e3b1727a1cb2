"""Rough value estimate for cards the price feeds know nothing about."""

import math
from datetime import date
from typing import Any, Mapping, Optional, Union

from ..core.constants import (
    DEFAULT_BASE_VALUE,
    FOIL_MARKERS,
    FOIL_MULTIPLIER,
    RARITY_TIERS,
    VINTAGE_MULTIPLIER,
    VINTAGE_YEAR,
)
from ..core.types import CardRecord


def _release_year(release_date: Optional[str]) -> Optional[int]:
    # API dates look like "1999/01/09"; stored ones may be ISO
    if not release_date:
        return None
    text = str(release_date).strip().replace("/", "-")
    try:
        return date.fromisoformat(text[:10]).year
    except ValueError:
        head = text[:4]
        return int(head) if head.isdigit() else None


def _base_value(rarity: Optional[str]) -> float:
    if not rarity or not isinstance(rarity, str):
        return DEFAULT_BASE_VALUE
    lowered = rarity.lower()
    for markers, value in RARITY_TIERS:
        if any(marker in lowered for marker in markers):
            return value
    return DEFAULT_BASE_VALUE


def estimate_card_value(
    rarity: Optional[str],
    name: Optional[str] = None,
    release_date: Optional[str] = None,
) -> float:
    """Estimate a card's value, rounded to the nearest quarter.

    Rarity picks the base tier, a foil name multiplies by 1.5 and a set
    released before 2000 doubles it.
    """
    value = _base_value(rarity)

    if name and any(marker in name for marker in FOIL_MARKERS):
        value *= FOIL_MULTIPLIER

    year = _release_year(release_date)
    if year is not None and year < VINTAGE_YEAR:
        value *= VINTAGE_MULTIPLIER

    # half-up: 1.125 becomes 1.25
    return math.floor(value * 4 + 0.5) / 4


def estimate_record_value(card: Union[CardRecord, Mapping[str, Any]]) -> float:
    """Apply :func:`estimate_card_value` to a record or a raw API card."""
    if isinstance(card, CardRecord):
        return estimate_card_value(card.rarity, card.name, card.set_release_date)

    set_info = card.get("set") or {}
    release_date = card.get("setReleaseDate") or (
        set_info.get("releaseDate") if isinstance(set_info, Mapping) else None
    )
    return estimate_card_value(card.get("rarity"), card.get("name"), release_date)
