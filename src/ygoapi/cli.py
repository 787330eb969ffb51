"""ygoapi CLI - look up Yu-Gi-Oh! cards from the command line."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .client import YgoApi
from .config import Settings
from .exceptions import YgoError
from .helpers import is_monster_card
from .models import Card

T = TypeVar("T")

console = Console()

app = typer.Typer(
    name="ygoapi",
    help="ygoapi - YGOPRODeck card lookup from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

images_app = typer.Typer(help="Card image cache commands")
app.add_typer(images_app, name="images")


@app.callback()
def main() -> None:
    """Configure logging from YGOAPI_LOG_LEVEL before any command runs."""
    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )


def run_with_client(action: Callable[[YgoApi], Awaitable[T]]) -> T:
    """Run ``action`` against a client built from settings, in a fresh event loop."""

    async def _run() -> T:
        async with YgoApi.from_settings() as api:
            return await action(api)

    try:
        return asyncio.run(_run())
    except YgoError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1) from e


def output_json(data: Any) -> None:
    """Output data as JSON (plain text, no Rich formatting)."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(by_alias=True, exclude_none=True)
    elif isinstance(data, list):
        data = [item.model_dump(by_alias=True, exclude_none=True) for item in data]
    # Regular print keeps ANSI codes out of the JSON
    print(json.dumps(data, indent=2, default=str))


def _card_panel(card: Card) -> Panel:
    lines = [f"[green]{card.type}[/]"]
    if is_monster_card(card):
        stats = []
        if card.attribute:
            stats.append(card.attribute)
        if card.race:
            stats.append(card.race)
        if card.level is not None:
            stats.append(f"Level {card.level}")
        if card.linkval is not None:
            stats.append(f"Link {card.linkval}")
        if stats:
            lines.append(" / ".join(stats))
    elif card.race:
        lines.append(card.race)
    if card.desc:
        lines.append("")
        lines.append(card.desc)
    if card.atk is not None:
        defense = "-" if card.def_ is None else str(card.def_)
        lines.append(f"\n[bold]ATK {card.atk} / DEF {defense}[/bold]")
    if card.archetype:
        lines.append(f"\n[dim]Archetype: {card.archetype}[/dim]")
    return Panel("\n".join(lines), title=f"[bold cyan]{card.name}[/] [dim]#{card.id}[/]")


@app.command("card")
def card_cmd(
    name: Annotated[str, typer.Argument(help="Exact card name (or passcode with --id)")],
    by_id: Annotated[bool, typer.Option("--id", help="Treat NAME as a card passcode")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Show one card."""
    if by_id:
        card = run_with_client(lambda api: api.get_card_by_id(name))
    else:
        card = run_with_client(lambda api: api.get_card_by_name(name))

    if card is None:
        console.print(f"[yellow]No card found for {name!r}[/yellow]")
        raise typer.Exit(code=1)

    if as_json:
        output_json(card)
    else:
        console.print(_card_panel(card))


@app.command("search")
def search_cmd(
    fname: Annotated[str, typer.Argument(help="Part of the card name")],
    num: Annotated[int | None, typer.Option("--num", help="Page size (requires --offset)")] = None,
    offset: Annotated[int | None, typer.Option("--offset", help="Page offset (requires --num)")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Fuzzy search cards by name."""
    result = run_with_client(lambda api: api.search_cards(fname, num=num, offset=offset))

    if as_json:
        output_json(result)
        return

    table = Table(title=f"Found {len(result.data)} cards")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("ATK/DEF", justify="right")

    for card in result.data:
        stats = ""
        if card.atk is not None:
            stats = f"{card.atk}/{'-' if card.def_ is None else card.def_}"
        table.add_row(str(card.id), card.name, card.type[:40], stats)

    console.print(table)
    if result.meta and result.meta.rows_remaining:
        console.print(f"[dim]... and {result.meta.rows_remaining} more[/dim]")


@app.command("archetypes")
def archetypes_cmd(
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """List all archetypes."""
    archetypes = run_with_client(lambda api: api.get_all_archetypes())

    if as_json:
        output_json(archetypes)
        return

    table = Table(title=f"{len(archetypes)} archetypes")
    table.add_column("Archetype", style="cyan")
    for archetype in archetypes:
        table.add_row(archetype.archetype_name)
    console.print(table)


@app.command("sets")
def sets_cmd(
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """List all card sets."""
    card_sets = run_with_client(lambda api: api.get_all_card_sets())

    if as_json:
        output_json(card_sets)
        return

    table = Table(title=f"{len(card_sets)} sets")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Cards", justify="right")
    table.add_column("Released", style="dim")
    for card_set in card_sets:
        table.add_row(
            card_set.set_code,
            card_set.set_name,
            str(card_set.num_of_cards or ""),
            card_set.tcg_date or "",
        )
    console.print(table)


@app.command("version")
def version_cmd(
    as_json: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
) -> None:
    """Show the remote database version."""
    version = run_with_client(lambda api: api.check_database_version())

    if as_json:
        output_json(version)
    else:
        console.print(f"Database version [cyan]{version.database_version}[/] (updated {version.last_update})")


@images_app.command("cleanup")
def images_cleanup_cmd() -> None:
    """Delete cached card images older than the configured max age."""
    run_with_client(lambda api: api.cleanup_image_cache())
    console.print("[green]Image cache cleaned up[/green]")
