"""Market value resolution over the pokemontcg.io pricing blocks.

A card's value is looked up in a fixed order and the first usable number
wins:

1. the explicit ``market_value`` on the record (``marketValue``/``value`` on
   a raw dict)
2. ``tcgplayer.prices.normal.market``
3. ``tcgplayer.prices.holofoil.market``
4. ``tcgplayer.prices.reverseHolofoil.market``
5. ``cardmarket.prices.trendPrice``

Zero counts as missing, so a card stored with ``marketValue: 0`` still
picks up a remote price.
"""

from typing import Any, Mapping, Optional, Union

from ..core.types import CardRecord, PriceData

TCGPLAYER_PRICE_VARIANTS = ("normal", "holofoil", "reverseHolofoil")


def _positive(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _first_market(tcg: Optional[Mapping[str, Any]]) -> Optional[float]:
    if not tcg:
        return None
    prices = tcg.get("prices") or {}
    for key in TCGPLAYER_PRICE_VARIANTS:
        v = prices.get(key) or {}
        m = _positive(v.get("market"))
        if m is not None:
            return m
    return None


def _cardmarket_trend(ckm: Optional[Mapping[str, Any]]) -> Optional[float]:
    if not ckm:
        return None
    return _positive((ckm.get("prices") or {}).get("trendPrice"))


def remote_market_price(card_json: Mapping[str, Any]) -> Optional[float]:
    """Market price from the remote pricing blocks only (steps 2-5)."""
    market = _first_market(card_json.get("tcgplayer"))
    if market is not None:
        return market
    return _cardmarket_trend(card_json.get("cardmarket"))


def resolve_market_value(card: Union[CardRecord, Mapping[str, Any]]) -> Optional[float]:
    """Resolve a card's per-unit value, or None when nothing is priced."""
    if isinstance(card, CardRecord):
        explicit = _positive(card.market_value)
        if explicit is not None:
            return explicit
        market = _first_market(card.tcgplayer)
        if market is not None:
            return market
        return _cardmarket_trend(card.cardmarket)

    explicit = _positive(card.get("marketValue"))
    if explicit is None:
        explicit = _positive(card.get("value"))
    if explicit is not None:
        return explicit
    return remote_market_price(card)


def card_value(card: Union[CardRecord, Mapping[str, Any]]) -> float:
    """Per-unit value with 0.0 standing in for unpriced cards."""
    value = resolve_market_value(card)
    return value if value is not None else 0.0


def has_remote_pricing(card_json: Mapping[str, Any]) -> bool:
    return bool(card_json.get("tcgplayer") or card_json.get("cardmarket"))


def map_price_blocks(card_json: Mapping[str, Any]) -> PriceData:
    tcg = card_json.get("tcgplayer")
    ckm = card_json.get("cardmarket") or {}
    return PriceData(
        tcgplayer_market_usd=_first_market(tcg),
        cardmarket_trend_eur=(ckm.get("prices") or {}).get("trendPrice"),
        cardmarket_avg30_eur=(ckm.get("prices") or {}).get("avg30"),
        pricing_updatedAt_tcgplayer=(tcg or {}).get("updatedAt", ""),
        pricing_updatedAt_cardmarket=ckm.get("updatedAt", ""),
        price_sources=["pokemontcg.io"] if (tcg or ckm) else [],
    )
