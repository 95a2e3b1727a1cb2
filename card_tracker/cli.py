"""Command-line interface for the Pokemon card collection tracker."""

import asyncio
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.types import FilterCriteria
from .pricing.poketcg_prices import card_value, map_price_blocks, remote_market_price
from .resolve.poketcg import PokemonTCGClient
from .resolve.response_cache import ResponseCache
from .stats.engine import top_groups
from .store.backend import SQLiteStorage
from .store.collection_store import CollectionStore
from .store.report import money
from .ui.manager import CollectionManager
from .ui.notifier import Notice, Notifier
from .utils.config import ensure_storage_dir, settings
from .utils.error_handler import CardTrackerError, InvalidInputError, user_message
from .utils.log import configure_logging, get_logger

logger = get_logger(__name__)

# Rich console
console = Console()

app = typer.Typer(
    name="card-tracker",
    help="Pokemon Card Collection Tracker - search cards, track your collection and its value",
    add_completion=False
)

_NOTICE_STYLES = {
    "success": "[green]✓ {}[/green]",
    "info": "[blue]{}[/blue]",
    "warning": "[yellow]⚠ {}[/yellow]",
    "error": "[red]❌ {}[/red]",
}


def _print_notice(notice: Notice) -> None:
    console.print(_NOTICE_STYLES.get(notice.level, "{}").format(notice.message))


def build_manager(db_path: Optional[str] = None) -> CollectionManager:
    """Wire store, client and notifier for one CLI invocation."""
    store = CollectionStore(SQLiteStorage(ensure_storage_dir(db_path)))
    store.initialize()
    client = PokemonTCGClient(cache=ResponseCache(settings.cache_duration_seconds))
    manager = CollectionManager(store, client, notifier=Notifier(listener=_print_notice))
    manager.load()
    return manager


def _manager(ctx: typer.Context) -> CollectionManager:
    return build_manager((ctx.obj or {}).get("db"))


def _fail(error: Exception) -> None:
    logger.debug("Command failed", error=str(error), error_type=type(error).__name__)
    console.print(f"[red]❌ {user_message(error)}[/red]")
    raise typer.Exit(1)


async def _with_client(manager: CollectionManager, coro):
    try:
        return await coro
    finally:
        await manager.client.close()


def _card_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("Card ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Set")
    table.add_column("#")
    table.add_column("Rarity")
    table.add_column("Qty", justify="right")
    table.add_column("Condition")
    table.add_column("Value", justify="right", style="green")
    return table


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="Storage database path (default: STORAGE_PATH)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """Pokemon Card Collection Tracker."""
    configure_logging("DEBUG" if verbose else "WARNING", console=True)
    ctx.obj = {"db": db}


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Start of a Pokemon name"),
):
    """Search card names as you would type them."""
    try:
        manager = _manager(ctx)
        names = asyncio.run(_with_client(manager, manager.perform_search(query)))
    except CardTrackerError as e:
        _fail(e)

    if not names:
        console.print("[yellow]⚠ No matching Pokemon[/yellow]")
        return
    for name in names:
        console.print(f"• {name}")


@app.command()
def cards(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pokemon name"),
):
    """List every printing of a Pokemon, grouped by set."""
    try:
        manager = _manager(ctx)
        sets = asyncio.run(_with_client(manager, manager.select_result(name)))
    except CardTrackerError as e:
        _fail(e)

    for set_name, group in sets.items():
        table = Table(title=f"{set_name} ({group.get('releaseDate') or 'unknown date'})")
        table.add_column("Card ID", style="dim")
        table.add_column("#")
        table.add_column("Rarity")
        table.add_column("Price", justify="right", style="green")
        table.add_column("Cardmarket", justify="right")
        for card in group["cards"]:
            price = remote_market_price(card)
            trend = map_price_blocks(card).cardmarket_trend_eur
            if price is not None:
                shown = money(price)
            elif card.get("estimatedValue") is not None:
                shown = f"~{money(card['estimatedValue'])}"
            else:
                shown = "N/A"
            table.add_row(
                card["id"], card.get("number", ""), card.get("rarity") or "", shown,
                f"€{trend:.2f}" if trend is not None else "",
            )
        console.print(table)


@app.command()
def add(
    ctx: typer.Context,
    card_id: str = typer.Argument(..., help="Card ID, e.g. base1-4"),
    quantity: int = typer.Option(1, "--quantity", "-q", help="Copies owned"),
    condition: str = typer.Option("Near Mint", "--condition", "-c", help="Card condition"),
    notes: str = typer.Option("", "--notes", "-n", help="Free-form notes"),
):
    """Add a card to the collection by its ID."""
    try:
        manager = _manager(ctx)
        result = asyncio.run(_with_client(manager, manager.client.fetch_by_id(card_id)))
        collection = manager.add_remote_card(result.data, quantity, condition, notes)
    except CardTrackerError as e:
        _fail(e)

    if collection is None:
        raise typer.Exit(1)
    console.print(f"Collection now holds {len(collection.cards)} entries worth {money(collection.total_value)}")


@app.command()
def price(
    ctx: typer.Context,
    card_id: str = typer.Argument(..., help="Card ID in the collection"),
):
    """Refresh the market value of a collected card."""
    try:
        manager = _manager(ctx)
        value = asyncio.run(_with_client(manager, manager.fetch_price(card_id)))
    except CardTrackerError as e:
        _fail(e)
    if value is None:
        raise typer.Exit(1)


@app.command()
def update(
    ctx: typer.Context,
    card_id: str = typer.Argument(..., help="Card ID in the collection"),
    quantity: Optional[int] = typer.Option(None, "--quantity", "-q"),
    condition: Optional[str] = typer.Option(None, "--condition", "-c"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n"),
    market_value: Optional[str] = typer.Option(None, "--market-value"),
    purchase_price: Optional[str] = typer.Option(None, "--purchase-price"),
    purchase_date: Optional[str] = typer.Option(None, "--purchase-date"),
):
    """Edit a collected card."""
    updates = {
        key: value
        for key, value in {
            "quantity": quantity,
            "condition": condition,
            "notes": notes,
            "marketValue": market_value,
            "purchasePrice": purchase_price,
            "purchaseDate": purchase_date,
        }.items()
        if value is not None
    }
    if not updates:
        _fail(InvalidInputError("Nothing to update"))

    try:
        collection = _manager(ctx).update_card(card_id, updates)
    except CardTrackerError as e:
        _fail(e)
    if collection is None:
        raise typer.Exit(1)


@app.command()
def remove(
    ctx: typer.Context,
    card_id: str = typer.Argument(..., help="Card ID in the collection"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove a card from the collection."""
    if not yes and not typer.confirm("Are you sure you want to remove this card from your collection?"):
        raise typer.Abort()
    try:
        collection = _manager(ctx).remove_card(card_id)
    except CardTrackerError as e:
        _fail(e)
    if collection is None:
        raise typer.Exit(1)


@app.command("list")
def list_cards(
    ctx: typer.Context,
    name: str = typer.Option("", "--name"),
    card_type: str = typer.Option("", "--type"),
    set_name: str = typer.Option("", "--set"),
    rarity: str = typer.Option("", "--rarity"),
    condition: str = typer.Option("", "--condition"),
    min_value: Optional[str] = typer.Option(None, "--min"),
    max_value: Optional[str] = typer.Option(None, "--max"),
    sort: Optional[str] = typer.Option(None, "--sort", help="name, set, value, rarity or date"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    page: int = typer.Option(1, "--page", "-p"),
    page_size: Optional[int] = typer.Option(None, "--page-size"),
):
    """Show the collection with filters, sorting and paging."""
    try:
        manager = _manager(ctx)
        if page_size:
            manager.set_page_size(page_size)
        before = len(manager.notifier.notices)
        manager.apply_filters(FilterCriteria(
            name=name,
            type=card_type,
            set=set_name,
            rarity=rarity,
            condition=condition,
            min_value=min_value,
            max_value=max_value,
        ))
        if sort:
            manager.sort(sort)
            if desc:
                manager.sort(sort)
        if any(n.blocking for n in manager.notifier.notices[before:]):
            raise typer.Exit(1)
        rows = manager.page(page)
    except CardTrackerError as e:
        _fail(e)

    table = _card_table(f"Collection (page {manager.current_page} of {max(manager.total_pages, 1)})")
    for card in rows:
        table.add_row(
            card.id, card.name, card.set_name, card.number, card.rarity or "",
            str(card.quantity), card.condition, money(card_value(card)),
        )
    console.print(table)

    count, value = manager.view_totals()
    console.print(f"Showing {len(rows)} of {len(manager.view)} entries • {count} cards • {money(value)}")


@app.command()
def stats(ctx: typer.Context):
    """Collection statistics."""
    try:
        statistics = _manager(ctx).statistics()
    except CardTrackerError as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold]Total Cards:[/bold] {statistics.total.cards}\n"
        f"[bold]Unique Cards:[/bold] {statistics.total.unique}\n"
        f"[bold]Total Value:[/bold] {money(statistics.total.value)}\n"
        f"[bold]Added in last 30 days:[/bold] {statistics.recent.added} "
        f"({statistics.recent.cards} cards, {money(statistics.recent.value)})",
        title="Collection Statistics",
        border_style="blue"
    ))

    if statistics.top_cards:
        table = Table(title="Most Valuable Cards")
        table.add_column("Name", style="cyan")
        table.add_column("Set")
        table.add_column("Rarity")
        table.add_column("Value", justify="right", style="green")
        table.add_column("Qty", justify="right")
        for top in statistics.top_cards:
            table.add_row(top.name, top.set_name or "", top.rarity or "", money(top.value), str(top.quantity))
        console.print(table)

    for title, groups in (
        ("By Type", statistics.by_type),
        ("By Rarity", statistics.by_rarity),
        ("By Set", statistics.by_set),
    ):
        if not groups:
            continue
        table = Table(title=title)
        table.add_column("Group")
        table.add_column("Cards", justify="right")
        table.add_column("Value", justify="right", style="green")
        for group_name, group in top_groups(groups, limit=10):
            table.add_row(group_name, str(group.count), money(group.value))
        console.print(table)


@app.command()
def export(
    ctx: typer.Context,
    fmt: str = typer.Argument("csv", help="csv, json, pdf or print"),
    output_dir: Optional[str] = typer.Option(None, "--output", "-o", help="Output directory"),
):
    """Export the collection."""
    try:
        path = _manager(ctx).export(fmt, output_dir)
    except CardTrackerError as e:
        _fail(e)
    if path is None:
        raise typer.Exit(1)
    console.print(f"Output file: {path.absolute()}")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="JSON file produced by 'export json'"),
):
    """Replace the collection, settings and history from a JSON export."""
    try:
        collection = _manager(ctx).import_file(path)
    except CardTrackerError as e:
        _fail(e)
    if collection is None:
        raise typer.Exit(1)


@app.command()
def share(ctx: typer.Context):
    """Print a shareable summary of the collection."""
    try:
        console.print(_manager(ctx).share_message())
    except CardTrackerError as e:
        _fail(e)


@app.command("settings")
def settings_cmd(
    ctx: typer.Context,
    values: Optional[List[str]] = typer.Argument(None, help="key=value pairs to store"),
):
    """Show or change tracker settings."""
    try:
        manager = _manager(ctx)
        if values:
            partial = {}
            for item in values:
                key, sep, raw = item.partition("=")
                if not sep or not key.strip():
                    raise InvalidInputError(f"Expected key=value, got '{item}'")
                partial[key.strip()] = _parse_setting(raw.strip())
            current = manager.save_settings(partial)
        else:
            current = manager.load_settings()
    except CardTrackerError as e:
        _fail(e)

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in current.items():
        table.add_row(key, str(value))
    console.print(table)


def _parse_setting(raw: str):
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        return raw


@app.command()
def history(
    ctx: typer.Context,
    clear: bool = typer.Option(False, "--clear", help="Forget all searches"),
):
    """Show recent searches."""
    try:
        store = _manager(ctx).store
        if clear:
            store.clear_search_history()
            console.print("[green]✓ Search history cleared[/green]")
            return
        entries = store.get_search_history()
    except CardTrackerError as e:
        _fail(e)

    if not entries:
        console.print("[dim]No searches yet[/dim]")
    for entry in entries:
        console.print(f"{entry.timestamp}  {entry.term}")


@app.command()
def prefetch(
    ctx: typer.Context,
    names: Optional[List[str]] = typer.Argument(None, help="Pokemon names (default: common ones)"),
):
    """Warm the API cache in throttled batches."""
    try:
        manager = _manager(ctx)
        if names:
            coro = manager.client.prefetch(names)
        else:
            coro = manager.prefetch_common()
        results = asyncio.run(_with_client(manager, coro))
    except CardTrackerError as e:
        _fail(e)

    for name, result in results.items():
        if result is None:
            console.print(f"[red]❌ {name}[/red]")
        else:
            console.print(f"[green]✓ {name}[/green] ({result.source})")


@app.command()
def sets(ctx: typer.Context):
    """List card sets, newest first."""
    try:
        manager = _manager(ctx)
        result = asyncio.run(_with_client(manager, manager.client.fetch_sets()))
    except CardTrackerError as e:
        _fail(e)

    table = Table(title="Sets")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Series")
    table.add_column("Released")
    table.add_column("Cards", justify="right")
    for card_set in result.data:
        table.add_row(
            card_set.get("id", ""),
            card_set.get("name", ""),
            card_set.get("series") or "",
            card_set.get("releaseDate") or "",
            str(card_set.get("total") or ""),
        )
    console.print(table)
    if result.degraded:
        console.print(f"[yellow]⚠ Showing cached data: {result.error}[/yellow]")


if __name__ == "__main__":
    app()
