import math
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from .constants import CACHE_VERSION, DEFAULT_CONDITION, DEFAULT_LANGUAGE

# camelCase storage key -> attribute name, for fields whose names differ
_RENAMED_FIELDS = {
    "setName": "set_name",
    "setCode": "set_code",
    "setReleaseDate": "set_release_date",
    "marketValue": "market_value",
    "estimatedValue": "estimated_value",
    "addedDate": "added_date",
    "lastUpdated": "last_updated",
    "purchasePrice": "purchase_price",
    "purchaseDate": "purchase_date",
}
_SAME_FIELDS = (
    "id", "name", "number", "rarity", "types", "supertype", "images",
    "tcgplayer", "cardmarket", "quantity", "condition", "language", "notes",
)
_KNOWN_KEYS = set(_RENAMED_FIELDS) | set(_SAME_FIELDS)


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_quantity(value: Any) -> int:
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity if quantity >= 1 else 1


def _to_total(value: Any) -> float:
    amount = _to_float(value)
    return amount if amount is not None and math.isfinite(amount) else 0.0


def _dict_or(value: Any, default: Any) -> Any:
    return dict(value) if isinstance(value, dict) else default


@dataclass
class CardRecord:
    """One owned card entry in the collection."""
    id: str
    name: str
    number: str = ""
    set_name: str = ""
    set_code: str = ""
    rarity: Optional[str] = None
    types: List[str] = field(default_factory=list)
    supertype: Optional[str] = None
    images: Dict[str, str] = field(default_factory=dict)
    set_release_date: Optional[str] = None
    market_value: Optional[float] = None
    estimated_value: Optional[float] = None
    tcgplayer: Optional[Dict[str, Any]] = None
    cardmarket: Optional[Dict[str, Any]] = None
    quantity: int = 1
    condition: str = DEFAULT_CONDITION
    language: str = DEFAULT_LANGUAGE
    notes: str = ""
    added_date: Optional[str] = None
    last_updated: Optional[str] = None
    purchase_price: Optional[float] = None
    purchase_date: Optional[str] = None
    # Unknown keys from stored JSON, written back unchanged
    extra: Dict[str, Any] = field(default_factory=dict)

    def same_card(self, other: "CardRecord") -> bool:
        """Identity: same id, or same (name, set code, number)."""
        if self.id and self.id == other.id:
            return True
        return (
            self.name == other.name
            and self.set_code == other.set_code
            and self.number == other.number
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardRecord":
        types = data.get("types") or []
        if isinstance(types, str):
            types = [types]
        elif not isinstance(types, (list, tuple)):
            types = []
        distinct_types: List[str] = []
        for t in types:
            if t not in distinct_types:
                distinct_types.append(t)

        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            number=str(data.get("number") or ""),
            set_name=data.get("setName") or "",
            set_code=data.get("setCode") or "",
            rarity=data.get("rarity"),
            types=distinct_types,
            supertype=data.get("supertype"),
            images=_dict_or(data.get("images"), {}),
            set_release_date=data.get("setReleaseDate"),
            market_value=_to_float(data.get("marketValue")),
            estimated_value=_to_float(data.get("estimatedValue")),
            tcgplayer=_dict_or(data.get("tcgplayer"), None),
            cardmarket=_dict_or(data.get("cardmarket"), None),
            quantity=_to_quantity(data.get("quantity", 1)),
            condition=data.get("condition") or DEFAULT_CONDITION,
            language=data.get("language") or DEFAULT_LANGUAGE,
            notes=data.get("notes") or "",
            added_date=data.get("addedDate"),
            last_updated=data.get("lastUpdated"),
            purchase_price=_to_float(data.get("purchasePrice")),
            purchase_date=data.get("purchaseDate"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        for key in _SAME_FIELDS:
            data[key] = getattr(self, key)
        for key, attr in _RENAMED_FIELDS.items():
            data[key] = getattr(self, attr)
        data["types"] = list(self.types)
        data["images"] = dict(self.images)
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class Collection:
    """Owned cards plus aggregate fields recomputed on every save."""
    cards: List[CardRecord] = field(default_factory=list)
    version: str = CACHE_VERSION
    last_updated: Optional[str] = None
    total_count: int = 0
    total_value: float = 0.0

    def find(self, card_id: str) -> Optional[CardRecord]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Collection":
        cards = data.get("cards")
        if not isinstance(cards, list):
            cards = []
        return cls(
            cards=[CardRecord.from_dict(c) for c in cards if isinstance(c, dict)],
            version=data.get("version") or CACHE_VERSION,
            last_updated=data.get("lastUpdated"),
            total_count=int(_to_total(data.get("totalCount"))),
            total_value=_to_total(data.get("totalValue")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cards": [c.to_dict() for c in self.cards],
            "version": self.version,
            "lastUpdated": self.last_updated,
            "totalCount": self.total_count,
            "totalValue": self.total_value,
        }


@dataclass
class SearchHistoryEntry:
    term: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return {"term": self.term, "timestamp": self.timestamp}


@dataclass
class CacheEntry:
    """In-memory API response, ``timestamp`` in epoch seconds."""
    data: Any
    timestamp: float


@dataclass
class FetchResult:
    """Remote client response tagged with where the data came from."""
    data: Any
    source: str  # api | api_empty | cache | stale_cache
    cached: bool = False
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.source == "stale_cache"


@dataclass
class PriceData:
    tcgplayer_market_usd: Optional[float]
    cardmarket_trend_eur: Optional[float]
    cardmarket_avg30_eur: Optional[float]
    pricing_updatedAt_tcgplayer: str
    pricing_updatedAt_cardmarket: str
    price_sources: List[str]


@dataclass
class GroupTotals:
    count: int = 0
    value: float = 0.0


@dataclass
class SetGroup(GroupTotals):
    cards: List[CardRecord] = field(default_factory=list)


@dataclass
class TotalStats:
    cards: int = 0
    value: float = 0.0
    unique: int = 0


@dataclass
class RecentStats:
    cards: int = 0
    value: float = 0.0
    added: int = 0


@dataclass
class TopCard:
    name: str
    value: float
    quantity: int
    total_value: float
    rarity: Optional[str]
    set_name: Optional[str]


@dataclass
class Statistics:
    total: TotalStats = field(default_factory=TotalStats)
    recent: RecentStats = field(default_factory=RecentStats)
    top_cards: List[TopCard] = field(default_factory=list)
    by_type: Dict[str, GroupTotals] = field(default_factory=dict)
    by_rarity: Dict[str, GroupTotals] = field(default_factory=dict)
    by_set: Dict[str, SetGroup] = field(default_factory=dict)


@dataclass
class FilterCriteria:
    """Collection view filters; empty/None fields are ignored."""
    name: str = ""
    type: str = ""
    set: str = ""
    rarity: str = ""
    condition: str = ""
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    def is_empty(self) -> bool:
        return not (
            self.name or self.type or self.set or self.rarity or self.condition
            or self.min_value is not None or self.max_value is not None
        )
