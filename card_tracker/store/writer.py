"""CSV export for the card collection with a fixed header structure."""

import csv
import io
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from ..core.constants import CSV_HEADER, EXPORT_FILENAME_PREFIX
from ..core.types import CardRecord
from ..pricing.poketcg_prices import card_value
from ..utils.config import ensure_export_dir
from ..utils.error_handler import ExportError
from ..utils.log import get_logger


def export_filename(extension: str, today: Optional[date] = None) -> str:
    """``pokemon-collection-YYYY-MM-DD.<extension>``"""
    today = today or date.today()
    return f"{EXPORT_FILENAME_PREFIX}-{today.isoformat()}.{extension}"


def _blank(value: Any) -> Any:
    return "" if value is None else value


class CSVExporter:
    """Writes a collection snapshot as CSV, one row per owned entry."""

    FIXED_HEADER = list(CSV_HEADER)

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        self.logger = get_logger(__name__)
        self.output_dir = Path(output_dir) if output_dir is not None else None

    def build_row(self, card: CardRecord) -> Dict[str, Any]:
        """Build a row dictionary with columns in EXACT header order."""
        return {
            "Name": card.name,
            "Set": card.set_name,
            "Number": card.number,
            "Rarity": _blank(card.rarity),
            "Quantity": card.quantity,
            "Condition": card.condition,
            "Language": card.language,
            "Market Value": card_value(card),
            "Purchase Price": _blank(card.purchase_price),
            "Purchase Date": _blank(card.purchase_date),
            "Notes": card.notes,
            "Card ID": card.id,
        }

    def to_csv_text(self, cards: Sequence[CardRecord]) -> str:
        buffer = io.StringIO()
        # the csv module doubles embedded quotes
        writer = csv.DictWriter(buffer, fieldnames=self.FIXED_HEADER, lineterminator="\n")
        writer.writeheader()
        for card in cards:
            writer.writerow(self.build_row(card))
        return buffer.getvalue()

    def write(
        self,
        cards: Sequence[CardRecord],
        path: Optional[Union[str, Path]] = None,
        today: Optional[date] = None,
    ) -> Path:
        """Write ``cards`` to ``path`` (default: dated file in the export dir)."""
        if path is None:
            directory = ensure_export_dir(str(self.output_dir) if self.output_dir else None)
            path = directory / export_filename("csv", today)
        path = Path(path)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", newline="", encoding="utf-8") as f:
                f.write(self.to_csv_text(cards))
        except OSError as e:
            raise ExportError(f"Could not write CSV export: {e}", details={"path": str(path)}) from e

        self.logger.info("CSV export written", path=str(path), rows=len(cards))
        return path
