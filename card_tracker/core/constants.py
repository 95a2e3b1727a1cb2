from typing import Any, Dict, Final, List, Tuple

# Storage schema
CACHE_VERSION: Final[str] = "v1.0.0"
EXPORT_VERSION: Final[str] = "1.0.0"
COLLECTION_KEY: Final[str] = f"pokemon_collection_{CACHE_VERSION}"
SETTINGS_KEY: Final[str] = f"tracker_settings_{CACHE_VERSION}"
SEARCH_HISTORY_KEY: Final[str] = f"search_history_{CACHE_VERSION}"
LEGACY_COLLECTION_KEY: Final[str] = "pokemonCards"
LEGACY_KEYS: Final[Tuple[str, ...]] = (
    LEGACY_COLLECTION_KEY,
    "pokemon_collection",
    "pokemon_tracker_settings",
)
# clear_all also sweeps keys carrying this prefix
LEGACY_KEY_PREFIX: Final[str] = "pokemon_tracker_"

SEARCH_HISTORY_LIMIT: Final[int] = 50

DEFAULT_SETTINGS: Final[Dict[str, Any]] = {
    "theme": "auto",
    "currency": "USD",
    "showPrices": True,
    "showImages": True,
    "autoSave": True,
    "cacheDuration": 24,
    "apiLimit": 50,
}

# Card record defaults
DEFAULT_CONDITION: Final[str] = "Near Mint"
DEFAULT_LANGUAGE: Final[str] = "English"
CARD_CONDITIONS: Final[List[str]] = [
    "Mint", "Near Mint", "Excellent", "Good", "Fair", "Poor",
]
POKEMON_TYPES: Final[List[str]] = [
    "Normal", "Fire", "Water", "Electric", "Grass", "Ice",
    "Fighting", "Poison", "Ground", "Flying", "Psychic",
    "Bug", "Rock", "Ghost", "Dark", "Dragon", "Steel", "Fairy",
]

# Statistics
RECENT_WINDOW_DAYS: Final[int] = 30
TOP_CARDS_LIMIT: Final[int] = 10
UNKNOWN_RARITY: Final[str] = "Unknown"
UNKNOWN_SET: Final[str] = "Unknown Set"

# Value estimator tiers, checked in order against the lower-cased rarity
DEFAULT_BASE_VALUE: Final[float] = 0.5
RARITY_TIERS: Final[List[Tuple[Tuple[str, ...], float]]] = [
    (("ultra rare", "secret rare"), 10.0),
    (("rare",), 2.0),
    (("uncommon",), 0.75),
    (("common",), 0.25),
]
FOIL_MARKERS: Final[Tuple[str, ...]] = ("Holofoil", "Foil")
FOIL_MULTIPLIER: Final[float] = 1.5
VINTAGE_YEAR: Final[int] = 2000
VINTAGE_MULTIPLIER: Final[float] = 2.0

# Remote API
NAME_PAGE_SIZE: Final[int] = 250
SET_PAGE_SIZE: Final[int] = 500
SEARCH_RESULT_LIMIT: Final[int] = 10
COMMON_POKEMON: Final[List[str]] = [
    "Pikachu", "Charizard", "Blastoise", "Venusaur", "Mewtwo", "Gengar",
]

# Export
CSV_HEADER: Final[List[str]] = [
    "Name", "Set", "Number", "Rarity", "Quantity", "Condition", "Language",
    "Market Value", "Purchase Price", "Purchase Date", "Notes", "Card ID",
]
EXPORT_FILENAME_PREFIX: Final[str] = "pokemon-collection"
EXPORT_FORMATS: Final[Tuple[str, ...]] = ("csv", "json", "pdf", "print")

SORT_KEYS: Final[Tuple[str, ...]] = ("name", "set", "value", "rarity", "date")
