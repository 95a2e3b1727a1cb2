"""Pokemon TCG API client with response caching."""

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import aiohttp
from rapidfuzz import fuzz

from ..core.constants import COMMON_POKEMON, NAME_PAGE_SIZE, SEARCH_RESULT_LIMIT, SET_PAGE_SIZE
from ..core.types import FetchResult
from ..pricing.estimator import estimate_record_value
from ..pricing.poketcg_prices import has_remote_pricing
from ..utils.config import settings
from ..utils.error_handler import RemoteAPIError
from ..utils.log import LoggerMixin
from .batch import BatchQueue
from .response_cache import ResponseCache

_NUMBER_RE = re.compile(r"\d+")


def extract_number(card_number: Optional[str]) -> int:
    """Leading numeric part of a collector number ("025/165" -> 25, "SWSH001" -> 1)."""
    match = _NUMBER_RE.search(str(card_number or ""))
    return int(match.group()) if match else 0


def _to_card_data(card: Dict[str, Any]) -> Dict[str, Any]:
    card_set = card.get("set") or {}
    data = {
        "id": card.get("id"),
        "name": card.get("name"),
        "number": card.get("number", ""),
        "rarity": card.get("rarity"),
        "types": card.get("types") or [],
        "supertype": card.get("supertype"),
        "subtypes": card.get("subtypes") or [],
        "hp": card.get("hp"),
        "artist": card.get("artist"),
        "images": card.get("images") or {},
        "tcgplayer": card.get("tcgplayer"),
        "cardmarket": card.get("cardmarket"),
        "set": {
            "id": card_set.get("id"),
            "name": card_set.get("name"),
            "series": card_set.get("series"),
            "releaseDate": card_set.get("releaseDate"),
            "images": card_set.get("images") or {},
        },
    }
    if not has_remote_pricing(card):
        data["estimatedValue"] = estimate_record_value(data)
    return data


def group_cards_by_set(cards: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Group raw API cards by set name; each set's cards ordered by number."""
    grouped: Dict[str, Dict[str, Any]] = {}
    for card in cards:
        card_set = card.get("set") or {}
        set_name = card_set.get("name") or "Unknown Set"
        if set_name not in grouped:
            grouped[set_name] = {
                "setName": set_name,
                "setCode": card_set.get("id"),
                "setImages": card_set.get("images") or {},
                "releaseDate": card_set.get("releaseDate"),
                "series": card_set.get("series"),
                "cards": [],
            }
        grouped[set_name]["cards"].append(_to_card_data(card))

    for group in grouped.values():
        group["cards"].sort(key=lambda c: extract_number(c.get("number")))
    return grouped


class PokemonTCGClient(LoggerMixin):
    """Client for the Pokemon TCG API.

    Responses are cached per instance. A failed request is answered from the
    cache when any entry exists, however old; otherwise ``RemoteAPIError``
    propagates.
    """

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        page_size: Optional[int] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.cache = cache if cache is not None else ResponseCache(settings.cache_duration_seconds)
        self.api_key = api_key if api_key is not None else settings.POKEMON_TCG_API_KEY
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.page_size = page_size or settings.API_PAGE_SIZE
        self.session = session
        self.request_count = 0

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session exists."""
        if self.session is None or self.session.closed:
            headers = {"X-Api-Key": self.api_key} if self.api_key else {}
            self.session = aiohttp.ClientSession(headers=headers)

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def __aenter__(self) -> "PokemonTCGClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        await self._ensure_session()
        url = f"{self.base_url}{path}"
        self.request_count += 1
        try:
            async with self.session.get(url, params=params) as response:
                if not 200 <= response.status < 300:
                    raise RemoteAPIError(
                        f"API error: {response.status}",
                        status=response.status,
                        details={"url": url, "params": params},
                    )
                return await response.json()
        except aiohttp.ClientError as e:
            raise RemoteAPIError(f"Network error: {e}", details={"url": url}) from e
        except asyncio.TimeoutError as e:
            raise RemoteAPIError("Request timed out", details={"url": url}) from e
        except ValueError as e:
            raise RemoteAPIError("Invalid JSON in API response", details={"url": url}) from e

    async def _cached_fetch(
        self,
        cache_key: str,
        request: Callable[[], Awaitable[Dict[str, Any]]],
        transform: Callable[[Dict[str, Any]], Any],
        use_cache: bool = True,
        empty: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> FetchResult:
        if use_cache:
            entry = self.cache.get_fresh(cache_key)
            if entry is not None:
                self.logger.debug("Cache hit", key=cache_key)
                return FetchResult(data=entry.data, source="cache", cached=True)

        ctx = self.log_start("api_fetch", key=cache_key)
        try:
            payload = await request()
        except RemoteAPIError as e:
            stale = self.cache.get(cache_key)
            if stale is not None:
                self.logger.warning("Using stale cache after API failure", key=cache_key, error=e.message)
                return FetchResult(data=stale.data, source="stale_cache", cached=True, error=e.message)
            self.log_error(ctx, e, status=e.status)
            raise

        if empty is not None and not payload.get("data"):
            self.logger.info("No results from API", key=cache_key)
            return FetchResult(data=empty(payload), source="api_empty")

        data = transform(payload)
        self.cache.set(cache_key, data)
        self.log_success(ctx)
        return FetchResult(data=data, source="api")

    async def fetch_by_name(
        self, name: str, page_size: int = NAME_PAGE_SIZE, use_cache: bool = True
    ) -> FetchResult:
        """All printings of a Pokemon, grouped by set."""
        cache_key = f"pokemon_{name.lower()}"
        params = {"q": f'name:"{name}"', "pageSize": page_size, "orderBy": "set.name"}

        def transform(payload: Dict[str, Any]) -> Dict[str, Any]:
            cards = payload.get("data") or []
            return {
                "name": name,
                "sets": group_cards_by_set(cards),
                "total": len(cards),
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
            }

        def empty(payload: Dict[str, Any]) -> Dict[str, Any]:
            return {"name": name, "sets": {}, "total": 0}

        return await self._cached_fetch(
            cache_key,
            lambda: self._get_json("/cards", params),
            transform,
            use_cache=use_cache,
            empty=empty,
        )

    async def fetch_by_id(self, card_id: str, use_cache: bool = True) -> FetchResult:
        return await self._cached_fetch(
            f"card_{card_id}",
            lambda: self._get_json(f"/cards/{card_id}"),
            lambda payload: _to_card_data(payload.get("data") or {}),
            use_cache=use_cache,
        )

    async def fetch_sets(self, page_size: int = SET_PAGE_SIZE, use_cache: bool = True) -> FetchResult:
        """All sets, newest first."""
        params = {"pageSize": page_size, "orderBy": "-releaseDate"}
        return await self._cached_fetch(
            f"allsets_{page_size}",
            lambda: self._get_json("/sets", params),
            lambda payload: payload.get("data") or [],
            use_cache=use_cache,
        )

    async def fetch_by_set(
        self, set_id: str, page_size: int = SET_PAGE_SIZE, use_cache: bool = True
    ) -> FetchResult:
        params = {"q": f"set.id:{set_id}", "pageSize": page_size, "orderBy": "number"}

        def transform(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
            cards = [_to_card_data(card) for card in payload.get("data") or []]
            cards.sort(key=lambda c: extract_number(c.get("number")))
            return cards

        return await self._cached_fetch(
            f"set_{set_id}_{page_size}",
            lambda: self._get_json("/cards", params),
            transform,
            use_cache=use_cache,
        )

    async def search_names(
        self, query: str, limit: int = SEARCH_RESULT_LIMIT, use_cache: bool = True
    ) -> FetchResult:
        """Distinct card names starting with ``query``, closest match first."""
        normalized = query.strip()
        params = {"q": f'name:"{normalized}*"', "pageSize": self.page_size, "orderBy": "name"}

        def transform(payload: Dict[str, Any]) -> List[str]:
            names: List[str] = []
            for card in payload.get("data") or []:
                card_name = card.get("name")
                if card_name and card_name not in names:
                    names.append(card_name)
            wanted = normalized.lower()
            names.sort(key=lambda n: fuzz.ratio(wanted, n.lower()), reverse=True)
            return names[:limit]

        return await self._cached_fetch(
            f"search_{normalized.lower()}_{limit}",
            lambda: self._get_json("/cards", params),
            transform,
            use_cache=use_cache,
        )

    async def prefetch(
        self,
        names: Iterable[str] = COMMON_POKEMON,
        queue: Optional[BatchQueue] = None,
    ) -> Dict[str, Optional[FetchResult]]:
        """Warm the cache for ``names``; a failed name maps to None."""
        queue = queue or BatchQueue(settings.BATCH_SIZE, settings.BATCH_DELAY_MS / 1000)
        futures = {
            name: queue.enqueue(lambda n=name: self.fetch_by_name(n))
            for name in names
        }

        results: Dict[str, Optional[FetchResult]] = {}
        for name, future in futures.items():
            try:
                results[name] = await future
            except RemoteAPIError as e:
                self.logger.warning("Prefetch failed", name=name, error=e.message)
                results[name] = None

        self.logger.info(
            "Prefetch complete",
            requested=len(results),
            cached=sum(1 for r in results.values() if r is not None),
        )
        return results
