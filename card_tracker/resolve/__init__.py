"""Resolve package for Pokemon TCG API access."""

from .batch import BatchQueue
from .poketcg import PokemonTCGClient, extract_number, group_cards_by_set
from .response_cache import ResponseCache

__all__ = ["BatchQueue", "PokemonTCGClient", "ResponseCache", "extract_number", "group_cards_by_set"]
