"""
Command-line interface for family history trees.

Provides tree management and GEDCOM import/export.
"""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from family_history import __version__
from family_history.config import Settings, load_settings, setup_logging
from family_history.core.exceptions import FamilyHistoryError
from family_history.core.models import Tree
from family_history.interchange import decode_upload, export_gedcom, import_gedcom
from family_history.storage.store import TreeStore

console = Console()


def _open_store(ctx: click.Context) -> TreeStore:
    settings: Settings = ctx.obj["settings"]
    store = TreeStore(settings.database_path)
    store.connect()
    ctx.call_on_close(store.close)
    return store


def _require_tree(store: TreeStore, slug: str) -> Tree:
    tree = store.get_tree_by_slug(slug)
    if tree is None:
        console.print(f"[red]Error: no tree with slug '{slug}'[/red]")
        sys.exit(1)
    return tree


@click.group()
@click.version_option(version=__version__, prog_name="family-history")
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML settings file")
@click.option("--db", "db_path", envvar="FAMILY_HISTORY_DB", help="SQLite database path")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, config_path: Optional[str], db_path: Optional[str], verbose: bool):
    """
    Family history record keeper.

    Imports and exports GEDCOM files for private family trees.
    """
    ctx.ensure_object(dict)
    try:
        settings = load_settings(config_path)
    except FamilyHistoryError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if db_path:
        settings.database_path = db_path
    if verbose:
        settings.log_level = "DEBUG"

    setup_logging(settings)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


# =============================================================================
# Tree Commands
# =============================================================================

@cli.group()
def tree():
    """Tree management."""
    pass


@tree.command("create")
@click.argument("slug")
@click.argument("name")
@click.pass_context
def tree_create(ctx, slug: str, name: str):
    """Create an empty tree."""
    store = _open_store(ctx)
    try:
        with store.session():
            created = store.create_tree(slug, name)
    except sqlite3.IntegrityError:
        console.print(f"[red]Error: tree slug '{slug}' already exists[/red]")
        sys.exit(1)

    console.print(f"[green]Created tree[/green] {created.name} ({created.slug}, id {created.id})")


@tree.command("info")
@click.argument("slug")
@click.pass_context
def tree_info(ctx, slug: str):
    """Display record counts for a tree."""
    store = _open_store(ctx)
    found = _require_tree(store, slug)
    stats = store.get_statistics(found.id)

    table = Table(title=f"Tree: {found.name}")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("People", str(stats["people"]))
    table.add_row("Families", str(stats["families"]))
    table.add_row("Child links", str(stats["memberships"]))
    table.add_row("Narratives", str(stats["narratives"]))

    console.print(table)


# =============================================================================
# GEDCOM Commands
# =============================================================================

@cli.group()
def gedcom():
    """GEDCOM import and export."""
    pass


@gedcom.command("import")
@click.argument("slug")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def gedcom_import(ctx, slug: str, file: str):
    """Import a GEDCOM file into a tree."""
    settings: Settings = ctx.obj["settings"]
    store = _open_store(ctx)
    found = _require_tree(store, slug)

    text = decode_upload(Path(file).read_bytes())
    try:
        summary = import_gedcom(store, found.id, text, batch_size=settings.import_batch_size)
    except FamilyHistoryError as e:
        console.print(f"[red]Import failed: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Imported {Path(file).name} into {found.name}")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("People", str(summary.people_imported))
    table.add_row("Families", str(summary.families_imported))
    table.add_row("Skipped references", str(summary.skipped_orphans))

    console.print(table)

    if summary.skipped_orphans:
        console.print("[yellow]Some spouse or child references did not match any individual.[/yellow]")


@gedcom.command("export")
@click.argument("slug")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file (default: <slug>.ged)")
@click.pass_context
def gedcom_export(ctx, slug: str, output: Optional[str]):
    """Export a tree as a GEDCOM file."""
    store = _open_store(ctx)
    found = _require_tree(store, slug)

    content = export_gedcom(store, found.id)
    output_path = Path(output or found.export_filename)
    output_path.write_bytes(content.encode("utf-8"))

    console.print(f"[green]Exported[/green] {found.name} to {output_path}")


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
