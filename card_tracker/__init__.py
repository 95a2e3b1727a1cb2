"""Pokemon Card Collection Tracker - search cards, track a collection and its value."""

__version__ = "1.0.0"
__author__ = "Pokemon Card Tracker Team"
__description__ = "Collection tracker backed by the Pokemon TCG API with offline caching and exports"

from .core.types import CardRecord, Collection, FetchResult, FilterCriteria, Statistics
from .pricing.estimator import estimate_card_value
from .pricing.poketcg_prices import resolve_market_value
from .resolve.batch import BatchQueue
from .resolve.poketcg import PokemonTCGClient
from .resolve.response_cache import ResponseCache
from .stats.engine import compute_statistics
from .store.backend import MemoryStorage, SQLiteStorage
from .store.collection_store import CollectionStore
from .ui.manager import CollectionManager
from .utils.config import settings

# Core functionality imports
from .utils.log import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__description__",
    # Core components
    "configure_logging",
    "get_logger",
    "settings",
    "CardRecord",
    "Collection",
    "FetchResult",
    "FilterCriteria",
    "Statistics",
    "estimate_card_value",
    "resolve_market_value",
    "ResponseCache",
    "PokemonTCGClient",
    "BatchQueue",
    "compute_statistics",
    "MemoryStorage",
    "SQLiteStorage",
    "CollectionStore",
    "CollectionManager",
]
