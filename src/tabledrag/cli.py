"""CLI entry point for table-drag. Uses Click for argument parsing."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone

import click

from tabledrag.engine import TableEngine
from tabledrag.identity import compute_fingerprint, parse_key, stored_fingerprint
from tabledrag.log import configure_logging
from tabledrag.markdown import render_document
from tabledrag.persistence import InMemoryPersistence, JsonFilePersistence
from tabledrag.settings import load_settings
from tabledrag.store import SizingStore
from tabledrag.types import TableKey


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


async def _open_store(data_file: str) -> SizingStore:
    store = SizingStore(JsonFilePersistence(data_file))
    await store.load()
    return store


def _format_ts(ms: int) -> str:
    if ms <= 0:
        return "-"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@click.group(invoke_without_command=True)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Console log level",
)
@click.pass_context
def main(ctx, log_level):
    """Inspect and apply stored table layouts."""
    configure_logging(log_level)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Stored data
# ---------------------------------------------------------------------------


@main.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "doc_path", default=None, help="Only records of this document")
def show(data_file, doc_path):
    """List stored table records."""
    store = _run(_open_store(data_file))
    shown = 0
    for key_str, record in store.tables.items():
        try:
            key_obj = parse_key(key_str)
        except ValueError:
            continue
        if doc_path is not None and key_obj["path"] != doc_path:
            continue
        ratios = ", ".join(f"{r:.3f}" for r in record.ratios)
        width = f"{record.table_px_width:g}px" if record.table_px_width else "auto"
        click.echo(f"{key_obj['path']}  {stored_fingerprint(key_obj)}")
        click.echo(f"  ratios [{ratios}]  width {width}  updated {_format_ts(record.updated_at)}")
        if record.row_heights:
            rows = ", ".join(f"{i}={h:g}" for i, h in sorted(record.row_heights.items()))
            click.echo(f"  rows {rows}")
        shown += 1
    if shown == 0:
        click.echo("No stored tables", err=True)


@main.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("old_path")
@click.argument("new_path")
def rename(data_file, old_path, new_path):
    """Move stored records from OLD_PATH to NEW_PATH."""

    async def _rename() -> int:
        store = await _open_store(data_file)
        count = store.rekey_path(old_path, new_path)
        await store.drain()
        if store.last_error is not None:
            raise click.ClickException(f"Failed to save {data_file}: {store.last_error}")
        return count

    count = _run(_rename())
    click.echo(f"Rewrote {count} record{'s' if count != 1 else ''}")


# ---------------------------------------------------------------------------
# Markdown documents
# ---------------------------------------------------------------------------


@main.command()
@click.argument("markdown_file", type=click.File("r", encoding="utf-8"))
def fingerprint(markdown_file):
    """Print the fingerprint of every table in MARKDOWN_FILE."""
    document = render_document(markdown_file.read())
    if not document.tables:
        click.echo("No tables found", err=True)
        sys.exit(1)
    for table, parsed in zip(document.tables, document.parsed):
        click.echo(f"{parsed.line_start + 1}-{parsed.line_end + 1}\t{compute_fingerprint(table)}")


@main.command()
@click.argument("markdown_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("data_file", type=click.Path(dir_okay=False))
@click.option("--path", "doc_path", default=None, help="Document path used in keys (default: MARKDOWN_FILE)")
@click.option("--pane-width", default=1000, show_default=True, help="Reading pane width in px")
@click.option("--line-width", default=700, show_default=True, help="Readable line width in px")
@click.option("--save/--no-save", default=False, help="Write layouts derived for new tables back")
def materialize(markdown_file, data_file, doc_path, pane_width, line_width, save):
    """Print MARKDOWN_FILE's tables as HTML with their stored widths."""
    with open(markdown_file, encoding="utf-8") as f:
        text = f.read()
    doc_path = doc_path or markdown_file

    async def _materialize() -> list[str]:
        store = await _open_store(data_file)
        if not save:
            store = SizingStore(InMemoryPersistence(store.payload()))
            await store.load()
        engine = TableEngine(store, load_settings(store.raw_settings))
        document = render_document(text, pane_width=pane_width, line_width=line_width)
        html: list[str] = []
        for table, parsed in zip(document.tables, document.parsed):
            key = TableKey(
                path=doc_path,
                fingerprint=compute_fingerprint(table),
                line_start=parsed.line_start,
                line_end=parsed.line_end,
            )
            engine.bind_table(table, key)
            result = engine.materialize(table, key)
            if result is not None:
                html.append(result)
        await store.drain()
        return html

    html = _run(_materialize())
    if not html:
        click.echo("No tables found", err=True)
        sys.exit(1)
    for chunk in html:
        click.echo(chunk)
