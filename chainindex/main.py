from __future__ import annotations

import json
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from chainindex.config import get_settings
from chainindex.domain.registry import available_record_types
from chainindex.errors import ChainIndexError, PartialBurnUpdateRejected
from chainindex.reporter import page_to_dict, print_burns, print_page, print_tally
from chainindex.repository import available_backends, build_repository
from chainindex.storage.db_factory import get_sync_connection
from chainindex.storage.schema import init_schema
from chainindex.utils.logging import configure_logging

app = typer.Typer(help="Chain index CLI.")


def _backend_option() -> Any:
    return typer.Option(
        None,
        "--backend",
        "-b",
        help="Storage backend (postgres, memory); defaults to INDEX_BACKEND.",
    )


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def parse_filters(values: List[str]) -> Dict[str, object]:
    """
    Turn repeated ``field=value`` options into a filter mapping.

    A comma separated value means membership: ``type=0,3``.
    """
    parsed: Dict[str, object] = {}
    for item in values:
        field, sep, value = item.partition("=")
        if not sep or not field:
            raise typer.BadParameter(f"expected field=value, got '{item}'", param_hint="--filter")
        parsed[field.strip()] = value.split(",") if "," in value else value
    return parsed


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"backend={settings.backend} env={settings.app_env} "
        f"page={settings.default_page_size}/{settings.max_page_size} "
        f"ring={settings.recent_ring_size} cache={settings.record_cache_size}"
    )
    typer.echo("Backends: " + ", ".join(available_backends()))
    typer.echo("Record types: " + ", ".join(available_record_types()))


@app.command("init-db")
def init_db() -> None:
    """
    Create the index tables and indexes in PostgreSQL.
    """
    _setup()
    conn = get_sync_connection(get_settings())
    try:
        executed = init_schema(conn)
    finally:
        conn.close()
    typer.echo(f"Schema ready ({executed} statements).")


@app.command("list")
def list_records(
    record_type: str = typer.Argument(..., help="Record type to list."),
    filters: List[str] = typer.Option(
        [], "--filter", "-f", help="Scope the listing: field=value (repeatable)."
    ),
    cursor: Optional[str] = typer.Option(None, "--cursor", "-c", help="Cursor of a previous page."),
    count: Optional[int] = typer.Option(
        None,
        "--count",
        "-n",
        help="Signed page size; negative pages towards newer records.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the page as JSON."),
    backend: Optional[str] = _backend_option(),
) -> None:
    """
    Print one page of records, newest first.
    """
    _setup()
    settings = get_settings()
    with build_repository(settings, backend=backend) as repo:
        try:
            page = repo.list(
                record_type,
                parse_filters(filters),
                cursor=cursor,
                count=count if count is not None else settings.default_page_size,
            )
        except ChainIndexError as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(code=2)

    if as_json:
        typer.echo(json.dumps(page_to_dict(page), indent=2))
    else:
        print_page(page)


@app.command()
def ingest(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON-lines event file."),
    backend: Optional[str] = _backend_option(),
) -> None:
    """
    Feed a JSON-lines file of events into the index.
    """
    _setup()
    tally: Counter = Counter()
    with build_repository(get_settings(), backend=backend) as repo:
        with path.open("r", encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    tally[repo.ingest(json.loads(line))] += 1
                except PartialBurnUpdateRejected as exc:
                    print_tally(tally)
                    typer.echo(f"Error at line {line_no}: {exc}", err=True)
                    raise typer.Exit(code=1)
                except (ChainIndexError, ValueError) as exc:
                    # malformed JSON and pydantic validation errors are ValueErrors too
                    print_tally(tally)
                    typer.echo(f"Error at line {line_no}: {exc}", err=True)
                    raise typer.Exit(code=2)
    print_tally(tally)


@app.command()
def burns(
    count: int = typer.Option(10, "--count", "-n", help="Number of recent blocks to show."),
    backend: Optional[str] = _backend_option(),
) -> None:
    """
    Show the most recent burn ledger entries and the burn total.
    """
    _setup()
    with build_repository(get_settings(), backend=backend) as repo:
        entries = repo.burn_list(count)
        total = repo.burn_total()
        blocks = repo.burn_count()
    print_burns(entries, total=total, count=blocks)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
