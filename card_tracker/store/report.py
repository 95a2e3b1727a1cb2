"""Printable HTML reports and the share message."""

from datetime import datetime
from html import escape
from typing import Dict, List, Optional

from ..core.constants import UNKNOWN_SET
from ..core.types import CardRecord, Collection
from ..pricing.poketcg_prices import card_value, resolve_market_value

TITLE = "Pokémon Card Collection"
FOOTER = (
    "This is an unofficial fan-made tool. "
    "Pokémon and Pokémon character names are trademarks of Nintendo."
)

_PDF_STYLE = """
body { font-family: Arial, sans-serif; margin: 40px; }
h1 { color: #333; border-bottom: 2px solid #4f46e5; padding-bottom: 10px; }
table { width: 100%; border-collapse: collapse; margin-top: 20px; }
th { background-color: #4f46e5; color: white; padding: 12px; text-align: left; }
td { padding: 10px; border-bottom: 1px solid #ddd; }
tr:nth-child(even) { background-color: #f9f9f9; }
.total { font-weight: bold; margin-top: 20px; padding: 15px; background-color: #f0f9ff; }
.footer { margin-top: 40px; font-size: 12px; color: #666; text-align: center; }
"""

_PRINT_STYLE = """
body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; }
table { width: 100%; border-collapse: collapse; margin-top: 20px; }
th { background-color: #4f46e5; color: white; padding: 12px; text-align: left; }
td { padding: 10px; }
tr.group { border-bottom: 1px solid #ddd; font-weight: bold; }
tr.variant { background-color: #f9f9f9; color: #666; }
tr.variant td.name { padding-left: 30px; }
.summary { margin-top: 30px; padding: 15px; background-color: #f0f9ff; }
@media print { @page { margin: 20mm; } body { font-size: 12pt; } }
"""


def money(value: float) -> str:
    return f"${value:.2f}"


def _cell(value: object) -> str:
    return f"<td>{escape('' if value is None else str(value))}</td>"


def _page(title: str, style: str, body: List[str]) -> str:
    return "\n".join([
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape(title)}</title>",
        f"<style>{style}</style>",
        "</head>",
        "<body>",
        *body,
        f'<div class="footer"><p>{escape(FOOTER)}</p></div>',
        "</body>",
        "</html>",
    ])


def render_pdf_html(collection: Collection, generated_at: Optional[datetime] = None) -> str:
    """Flat table of every entry, ready to print to PDF."""
    generated_at = generated_at or datetime.now()
    body = [
        f"<h1>{escape(TITLE)}</h1>",
        f"<p>Generated on {generated_at:%Y-%m-%d} at {generated_at:%H:%M:%S}</p>",
        f"<p>Total Cards: {len(collection.cards)}</p>",
        "<table>",
        "<thead><tr><th>Name</th><th>Set</th><th>#</th><th>Rarity</th>"
        "<th>Qty</th><th>Condition</th><th>Value</th></tr></thead>",
        "<tbody>",
    ]
    for card in collection.cards:
        value = resolve_market_value(card)
        body.append("<tr>" + "".join([
            _cell(card.name),
            _cell(card.set_name),
            _cell(card.number),
            _cell(card.rarity),
            _cell(card.quantity),
            _cell(card.condition),
            _cell(money(value) if value is not None else "N/A"),
        ]) + "</tr>")
    body += [
        "</tbody>",
        "</table>",
        f'<div class="total">Estimated Collection Value: {money(collection.total_value)}</div>',
    ]
    return _page(TITLE, _PDF_STYLE, body)


def group_by_name(cards: List[CardRecord]) -> Dict[str, List[CardRecord]]:
    """Entries grouped by card name, in first-seen order."""
    grouped: Dict[str, List[CardRecord]] = {}
    for card in cards:
        grouped.setdefault(card.name, []).append(card)
    return grouped


def render_print_html(collection: Collection, generated_at: Optional[datetime] = None) -> str:
    """Table grouped by name: a summary row per name, then one row per variant."""
    generated_at = generated_at or datetime.now()
    grouped = group_by_name(collection.cards)
    total_cards = sum(card.quantity for card in collection.cards)

    body = [
        f"<h1>{escape(TITLE)}</h1>",
        f"<p>Generated on {generated_at:%Y-%m-%d} &bull; {len(collection.cards)} cards</p>",
        "<table>",
        "<thead><tr><th>Name</th><th>Set</th><th>#</th><th>Qty</th>"
        "<th>Condition</th><th>Value</th></tr></thead>",
        "<tbody>",
    ]
    for name, cards in grouped.items():
        quantity = sum(card.quantity for card in cards)
        value = sum(card_value(card) * card.quantity for card in cards)
        body.append('<tr class="group">' + "".join([
            _cell(name),
            _cell(f"{len(cards)} variant(s)"),
            _cell(""),
            _cell(quantity),
            _cell(""),
            _cell(money(value)),
        ]) + "</tr>")
        for card in cards:
            body.append('<tr class="variant">' + "".join([
                f'<td class="name">&rarr; {escape(card.set_name or UNKNOWN_SET)}</td>',
                _cell(card.number),
                _cell(card.rarity),
                _cell(card.quantity),
                _cell(card.condition),
                _cell(money(card_value(card))),
            ]) + "</tr>")
    body += [
        "</tbody>",
        "</table>",
        '<div class="summary">',
        "<h3>Collection Summary</h3>",
        f"<p>Total Unique Cards: {len(grouped)}</p>",
        f"<p>Total Cards (including duplicates): {total_cards}</p>",
        f"<p><strong>Estimated Total Value: {money(collection.total_value)}</strong></p>",
        "</div>",
    ]
    return _page(f"Print {TITLE}", _PRINT_STYLE, body)


def share_text(collection: Collection) -> str:
    return (
        f"My Pokémon card collection has {len(collection.cards)} cards "
        f"worth {money(collection.total_value)}! Track yours at"
    )
