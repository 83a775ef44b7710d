from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from chainindex.domain.models import BurnLedgerEntry
from chainindex.domain.ordinal import split_ordinal
from chainindex.domain.registry import get_spec
from chainindex.pagination.result import ListResult


def _short(value: Any, width: int = 18) -> str:
    text = "-" if value is None else str(value)
    if len(text) <= width:
        return text
    return text[: width - 4] + "…" + text[-3:]


def page_to_dict(result: ListResult) -> Dict[str, Any]:
    """
    JSON-ready form of a page, as printed by `chainindex list --json`.
    """
    return {
        "record_type": result.record_type,
        "total": result.total,
        "first": result.first,
        "last": result.last,
        "is_start": result.is_start,
        "is_end": result.is_end,
        "filter": result.filter,
        "first_cursor": result.first_cursor,
        "last_cursor": result.last_cursor,
        "collection": [record.model_dump(mode="json") for record in result.collection],
    }


def print_page(result: ListResult, console: Optional[Console] = None) -> None:
    """
    Render one page as a rich table followed by the paging cursors.

    Columns are the record type's key fields, its position in the chain and its
    scope fields.
    """
    console = console or Console()
    spec = get_spec(result.record_type)

    if not result.collection:
        console.print(f"[yellow]No {spec.name} records.[/yellow] total={result.total}")
        return

    scope = [name for name in spec.scope_fields if name not in spec.key_fields]
    table = Table(
        title=f"{spec.name} ({len(result)} of {result.total})",
        box=box.ROUNDED,
        caption="Newest first",
    )
    for name in spec.key_fields:
        table.add_column(name, style="cyan", no_wrap=True)
    table.add_column("block/tx/log", justify="right", style="magenta")
    for name in scope:
        table.add_column(name, style="green")

    for record in result.collection:
        values = record.scope_values()
        if spec.name == "epoch":
            position = str(record.ordinal_index)
        else:
            position = "/".join(str(part) for part in split_ordinal(record.ordinal_index))
        table.add_row(
            *(_short(part) for part in record.primary_key),
            position,
            *(_short(values[name]) for name in scope),
        )

    console.print(table)
    marks: List[str] = []
    if result.is_start:
        marks.append("start")
    if result.is_end:
        marks.append("end")
    if marks:
        console.print(f"[dim]reached: {', '.join(marks)}[/dim]")
    if not result.is_start:
        console.print(f"newer: --cursor {result.first_cursor} --count=-{len(result)}")
    if not result.is_end:
        console.print(f"older: --cursor {result.last_cursor} --count={len(result)}")


def print_burns(
    entries: List[BurnLedgerEntry], total: int, count: int, console: Optional[Console] = None
) -> None:
    """Render recent burn ledger entries and the burn totals."""
    console = console or Console()
    table = Table(
        title="Burned native tokens",
        box=box.ROUNDED,
        caption=f"{count} blocks, total {total:,} wei",
    )
    table.add_column("Block", justify="right", style="cyan", no_wrap=True)
    table.add_column("Timestamp", style="magenta")
    table.add_column("Transactions", justify="right", style="blue")
    table.add_column("Amount (wei)", justify="right", style="green")
    table.add_column("Value", justify="right", style="bold green")

    for entry in entries:
        table.add_row(
            f"{entry.block_number:,}",
            entry.timestamp.isoformat() if entry.timestamp else "-",
            str(len(entry.tx_list)),
            f"{entry.amount:,}",
            f"{entry.nec_value:,.8f}",
        )
    console.print(table)


def print_tally(tally: Mapping[str, int], console: Optional[Console] = None) -> None:
    """Render the per-outcome counts of an ingest run."""
    console = console or Console()
    table = Table(title="Ingested events", box=box.ROUNDED)
    table.add_column("Outcome", style="cyan")
    table.add_column("Events", justify="right", style="magenta")
    for outcome, events in sorted(tally.items()):
        table.add_row(outcome, f"{events:,}")
    console.print(table)


__all__ = ["page_to_dict", "print_burns", "print_page", "print_tally"]
