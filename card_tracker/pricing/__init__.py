"""Pricing package: market value resolution and value estimates."""

from .estimator import estimate_card_value, estimate_record_value
from .poketcg_prices import PriceData, card_value, map_price_blocks, resolve_market_value

__all__ = [
    "PriceData",
    "map_price_blocks",
    "resolve_market_value",
    "card_value",
    "estimate_card_value",
    "estimate_record_value",
]
