"""Collection manager: search, ingestion, filtered/sorted/paged view and exports."""

import math
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.constants import DEFAULT_CONDITION
from ..core.types import CardRecord, Collection, FilterCriteria, Statistics
from ..pricing.estimator import estimate_record_value
from ..pricing.poketcg_prices import card_value, remote_market_price
from ..resolve.batch import BatchQueue
from ..resolve.poketcg import PokemonTCGClient
from ..stats.engine import compute_statistics, parse_timestamp
from ..store.collection_store import CollectionStore
from ..store.report import render_pdf_html, render_print_html, share_text
from ..store.writer import CSVExporter, export_filename
from ..utils.config import ensure_export_dir, settings
from ..utils.error_handler import (
    ConfigurationError,
    ExportError,
    ImportDataError,
    InvalidInputError,
    RemoteAPIError,
    StorageError,
)
from ..utils.log import LoggerMixin
from ..utils.validation import (
    parse_money,
    validate_condition,
    validate_export_format,
    validate_file_path,
    validate_quantity,
    validate_search_query,
    validate_sort_key,
    validate_value_range,
)
from .debounce import Debouncer, SequenceGuard
from .notifier import Notifier

# pdf and print are both HTML documents meant for the browser's print dialog
EXPORT_EXTENSIONS = {
    "csv": "csv",
    "json": "json",
    "pdf": "pdf.html",
    "print": "print.html",
}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def matches_filters(card: CardRecord, criteria: FilterCriteria) -> bool:
    """True when ``card`` passes every non-empty filter in ``criteria``."""
    if criteria.name and not _contains(card.name, criteria.name):
        return False
    if criteria.type:
        wanted = criteria.type.lower()
        in_types = any(t.lower() == wanted for t in card.types)
        if not in_types and (card.supertype or "").lower() != wanted:
            return False
    if criteria.set and not _contains(card.set_name, criteria.set):
        return False
    if criteria.rarity and not _contains(card.rarity, criteria.rarity):
        return False
    if criteria.condition and not _contains(card.condition, criteria.condition):
        return False
    if criteria.min_value is not None or criteria.max_value is not None:
        value = card_value(card)
        if criteria.min_value is not None and value < criteria.min_value:
            return False
        if criteria.max_value is not None and value > criteria.max_value:
            return False
    return True


def _sort_value(card: CardRecord, key: str) -> Any:
    if key == "name":
        return card.name.casefold()
    if key == "set":
        return card.set_name.casefold()
    if key == "rarity":
        return (card.rarity or "").casefold()
    if key == "value":
        return card_value(card)
    return parse_timestamp(card.added_date) or _EPOCH


def sort_cards(cards: List[CardRecord], key: str, order: str = "asc") -> List[CardRecord]:
    return sorted(cards, key=lambda c: _sort_value(c, key), reverse=(order == "desc"))


class CollectionManager(LoggerMixin):
    """Front-end state over a :class:`CollectionStore` and a card client.

    The store stays the source of truth: every mutation adopts the collection
    it returns, then rebuilds the view with the current filters and sort.
    Validation problems become blocking notices and leave state untouched.
    """

    def __init__(
        self,
        store: CollectionStore,
        client: PokemonTCGClient,
        notifier: Optional[Notifier] = None,
        page_size: Optional[int] = None,
        debounce_ms: Optional[int] = None,
        min_query_length: Optional[int] = None,
        exporter: Optional[CSVExporter] = None,
    ):
        self.store = store
        self.client = client
        self.notifier = notifier or Notifier()
        self.exporter = exporter or CSVExporter()
        self.page_size = page_size or settings.PAGE_SIZE
        self.min_query_length = min_query_length or settings.SEARCH_MIN_LENGTH
        delay_ms = debounce_ms if debounce_ms is not None else settings.SEARCH_DEBOUNCE_MS

        self.collection = Collection()
        self.view: List[CardRecord] = []
        self.criteria = FilterCriteria()
        self.sort_key: Optional[str] = None
        self.sort_order = "asc"
        self.current_page = 1

        self.search_query = ""
        self.search_results: List[str] = []
        self.selected_name: Optional[str] = None
        self.selected_cards: Dict[str, Dict[str, Any]] = {}

        self._debouncer = Debouncer(self.perform_search, delay_ms / 1000)
        self._search_guard = SequenceGuard()

    # -- collection state --------------------------------------------------

    def load(self) -> Collection:
        return self._adopt(self.store.load_collection())

    def _adopt(self, collection: Collection) -> Collection:
        self.collection = collection
        self._rebuild_view()
        return collection

    def _rebuild_view(self) -> None:
        view = [c for c in self.collection.cards if matches_filters(c, self.criteria)]
        if self.sort_key:
            view = sort_cards(view, self.sort_key, self.sort_order)
        self.view = view
        self.current_page = min(self.current_page, max(self.total_pages, 1))

    # -- search ------------------------------------------------------------

    def on_search_input(self, query: str):
        """Handle a keystroke; returns the scheduled search task, if any."""
        self.search_query = query
        if len(query.strip()) < self.min_query_length:
            self._debouncer.cancel()
            self._search_guard.invalidate()
            self.search_results = []
            self.selected_name = None
            return None
        return self._debouncer(query)

    async def flush_search(self) -> Any:
        return await self._debouncer.flush()

    async def perform_search(self, query: str) -> List[str]:
        try:
            normalized = validate_search_query(query, self.min_query_length)
        except InvalidInputError as e:
            self.search_results = []
            self.notifier.warning(e.message, blocking=True)
            return []

        token = self._search_guard.next()
        try:
            result = await self.client.search_names(normalized)
        except RemoteAPIError as e:
            if self._search_guard.is_current(token):
                self.search_results = []
                self.notifier.error(f"Search failed: {e.message}")
            return []

        if not self._search_guard.is_current(token):
            self.logger.debug("Dropping superseded search response", query=normalized)
            return []

        self.search_results = list(result.data)
        self.store.add_search_term(normalized)
        if result.degraded:
            self.notifier.warning(f"Showing cached results: {result.error}")
        return self.search_results

    async def select_result(self, name: str) -> Dict[str, Dict[str, Any]]:
        """Load every printing of ``name``, grouped by set."""
        self.selected_name = name
        self.search_query = name
        self.search_results = []
        try:
            result = await self.client.fetch_by_name(name)
        except RemoteAPIError as e:
            self.selected_cards = {}
            self.notifier.error(f"Failed to load cards: {e.message}")
            return {}

        self.selected_cards = result.data.get("sets", {})
        if result.source == "api_empty":
            self.notifier.info(f"No cards found for {name}")
        elif result.degraded:
            self.notifier.warning(f"Showing cached cards: {result.error}")
        return self.selected_cards

    # -- ingestion ---------------------------------------------------------

    def build_record(
        self,
        remote_card: Dict[str, Any],
        quantity: Any = 1,
        condition: str = DEFAULT_CONDITION,
        notes: str = "",
        set_info: Optional[Dict[str, Any]] = None,
    ) -> CardRecord:
        """Turn an API card into a collection entry, priced at ingestion."""
        if not remote_card.get("id") or not remote_card.get("name"):
            raise InvalidInputError("Select a card before adding it", details={"card": remote_card.get("id")})

        card_set = remote_card.get("set") or {}
        set_info = set_info or {}
        estimated = remote_card.get("estimatedValue")
        price = remote_market_price(remote_card)
        if price is None:
            price = estimated if estimated is not None else estimate_record_value(remote_card)

        return CardRecord(
            id=remote_card["id"],
            name=remote_card["name"],
            number=str(remote_card.get("number") or ""),
            set_name=set_info.get("setName") or card_set.get("name") or "",
            set_code=set_info.get("setCode") or card_set.get("id") or "",
            set_release_date=set_info.get("releaseDate") or card_set.get("releaseDate"),
            rarity=remote_card.get("rarity"),
            types=list(remote_card.get("types") or []),
            supertype=remote_card.get("supertype"),
            images=dict(remote_card.get("images") or {}),
            market_value=price,
            estimated_value=estimated,
            tcgplayer=remote_card.get("tcgplayer"),
            cardmarket=remote_card.get("cardmarket"),
            quantity=validate_quantity(quantity),
            condition=validate_condition(condition),
            notes=notes or "",
        )

    def add_card(self, card: CardRecord) -> Collection:
        collection = self._adopt(self.store.add_card(card))
        self.notifier.success("Card added to collection!")
        return collection

    def add_remote_card(
        self,
        remote_card: Dict[str, Any],
        quantity: Any = 1,
        condition: str = DEFAULT_CONDITION,
        notes: str = "",
        set_info: Optional[Dict[str, Any]] = None,
    ) -> Optional[Collection]:
        try:
            record = self.build_record(remote_card, quantity, condition, notes, set_info)
        except InvalidInputError as e:
            self.notifier.warning(e.message, blocking=True)
            return None
        return self.add_card(record)

    async def fetch_price(self, card_id: Optional[str]) -> Optional[float]:
        """Refresh a card's market value from the API."""
        if not card_id:
            self.notifier.warning("Please select a card first", blocking=True)
            return None

        try:
            result = await self.client.fetch_by_id(card_id)
        except RemoteAPIError as e:
            self.notifier.error(f"Failed to fetch price: {e.message}")
            return None

        remote = result.data or {}
        price = remote_market_price(remote)
        if price is None:
            self.notifier.info("No market price available for this card")
            return None

        if self.collection.find(card_id) is not None:
            updated = self.store.update_card(card_id, {
                "marketValue": price,
                "tcgplayer": remote.get("tcgplayer"),
                "cardmarket": remote.get("cardmarket"),
            })
            if updated is not None:
                self._adopt(updated)
        self.notifier.success(f"Market price updated: ${price:.2f}")
        return price

    def update_card(self, card_id: str, updates: Dict[str, Any]) -> Optional[Collection]:
        """Apply camelCase ``updates`` to one entry after validating them."""
        try:
            updates = self._validate_updates(updates)
        except InvalidInputError as e:
            self.notifier.warning(e.message, blocking=True)
            return None

        collection = self.store.update_card(card_id, updates)
        if collection is None:
            self.notifier.warning(f"Card {card_id} is not in the collection")
            return None
        self._adopt(collection)
        self.notifier.success("Card updated successfully!")
        return collection

    @staticmethod
    def _validate_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = dict(updates)
        if "quantity" in cleaned:
            cleaned["quantity"] = validate_quantity(cleaned["quantity"])
        if "condition" in cleaned:
            cleaned["condition"] = validate_condition(cleaned["condition"])
        for key in ("marketValue", "purchasePrice"):
            if key in cleaned:
                cleaned[key] = parse_money(cleaned[key], key)
        return cleaned

    def remove_card(self, card_id: str) -> Optional[Collection]:
        collection = self.store.remove_card(card_id)
        if collection is None:
            self.notifier.warning(f"Card {card_id} is not in the collection")
            return None
        self._adopt(collection)
        self.notifier.success("Card removed from collection")
        return collection

    async def prefetch_common(self) -> Dict[str, Any]:
        queue = BatchQueue(settings.BATCH_SIZE, settings.BATCH_DELAY_MS / 1000)
        return await self.client.prefetch(queue=queue)

    # -- view --------------------------------------------------------------

    def apply_filters(self, criteria: Optional[FilterCriteria] = None, **fields: Any) -> List[CardRecord]:
        """Filter the full collection afresh; always lands on page 1."""
        criteria = criteria or FilterCriteria(**fields)
        try:
            low, high = validate_value_range(criteria.min_value, criteria.max_value)
        except InvalidInputError as e:
            self.notifier.warning(e.message, blocking=True)
            return self.view

        self.criteria = replace(criteria, min_value=low, max_value=high)
        self.current_page = 1
        self._rebuild_view()
        return self.view

    def clear_filters(self) -> List[CardRecord]:
        return self.apply_filters(FilterCriteria())

    def sort(self, key: str) -> List[CardRecord]:
        """Sort by ``key``; the same key again flips the direction."""
        try:
            key = validate_sort_key(key)
        except InvalidInputError as e:
            self.notifier.warning(e.message, blocking=True)
            return self.view

        if key == self.sort_key:
            self.sort_order = "desc" if self.sort_order == "asc" else "asc"
        else:
            self.sort_key = key
            self.sort_order = "asc"
        self.view = sort_cards(self.view, key, self.sort_order)
        return self.view

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self.view) / self.page_size)

    def page(self, number: Optional[int] = None) -> List[CardRecord]:
        """Cards on page ``number`` (clamped), or on the current page."""
        if number is not None:
            self.current_page = max(1, min(int(number), max(self.total_pages, 1)))
        start = (self.current_page - 1) * self.page_size
        return self.view[start:start + self.page_size]

    def set_page_size(self, size: int) -> None:
        self.page_size = validate_quantity(size)
        self.current_page = 1

    def view_totals(self) -> Tuple[int, float]:
        """(cards, value) over the filtered view, quantities included."""
        cards = sum(c.quantity for c in self.view)
        value = sum(card_value(c) * c.quantity for c in self.view)
        return cards, value

    def statistics(self, now: Optional[datetime] = None) -> Statistics:
        return compute_statistics(self.collection.cards, now=now)

    # -- export / import ---------------------------------------------------

    def export(
        self,
        fmt: str,
        directory: Optional[Union[str, Path]] = None,
        today: Optional[date] = None,
    ) -> Optional[Path]:
        """Write the collection in ``fmt``; returns the file path or None."""
        try:
            fmt = validate_export_format(fmt)
        except InvalidInputError as e:
            self.notifier.warning(e.message, blocking=True)
            return None

        collection = self.store.load_collection()
        if not collection.cards:
            self.notifier.warning("No data to export")
            return None

        try:
            target = ensure_export_dir(str(directory) if directory else None)
            path = target / export_filename(EXPORT_EXTENSIONS[fmt], today)
            if fmt == "csv":
                self.exporter.write(collection.cards, path)
            else:
                self._write_text(path, self._render(fmt, collection))
        except (ExportError, ConfigurationError) as e:
            self.notifier.error(e.message)
            return None

        self.notifier.success(f"{fmt.upper()} exported successfully!")
        return path

    def _render(self, fmt: str, collection: Collection) -> str:
        if fmt == "json":
            text = self.store.export_all_data()
            if text is None:
                raise ExportError("Failed to export JSON")
            return text
        if fmt == "pdf":
            return render_pdf_html(collection)
        return render_print_html(collection)

    def _write_text(self, path: Path, text: str) -> None:
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ExportError(f"Could not write export: {e}", details={"path": str(path)}) from e
        self.logger.info("Export written", path=str(path), size=len(text))

    def import_file(self, path: Union[str, Path]) -> Optional[Collection]:
        """Replace everything with a JSON bundle; nothing changes if it is invalid."""
        try:
            file_path = validate_file_path(path, must_exist=True)
            text = file_path.read_text(encoding="utf-8")
            collection = self.store.import_data_or_raise(text)
        except (ImportDataError, InvalidInputError) as e:
            self.notifier.error(f"Import failed: {e.message}")
            return None
        except (OSError, UnicodeDecodeError) as e:
            self.notifier.error(f"Import failed: {e}")
            return None

        self._adopt(collection)
        self.notifier.success(f"Imported {len(collection.cards)} cards")
        return collection

    def share_message(self) -> str:
        return share_text(self.collection)

    def load_settings(self) -> Dict[str, Any]:
        return self.store.load_settings() or {}

    def save_settings(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        updated = self.store.save_settings(partial)
        if updated is None:
            raise StorageError("Could not save settings")
        self.notifier.success("Settings saved")
        return updated
