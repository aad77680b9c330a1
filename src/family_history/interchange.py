"""Entry points for moving a tree in and out of GEDCOM."""

from __future__ import annotations

from datetime import date

from family_history.core.export import GedcomExporter
from family_history.storage.store import TreeStore
from family_history.sync.importer import GedcomImporter, ImportSummary
from family_history.sync.reconciler import DEFAULT_BATCH_SIZE


def decode_upload(content: bytes) -> str:
    """Decode uploaded GEDCOM bytes, dropping a UTF-8 byte order mark."""
    return content.decode("utf-8-sig", errors="replace")


def import_gedcom(
    store: TreeStore,
    tree_id: str,
    text: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ImportSummary:
    """Import GEDCOM text into a tree and return the summary counts."""
    return GedcomImporter(store, batch_size=batch_size).import_text(tree_id, text)


def export_gedcom(store: TreeStore, tree_id: str, export_date: date | None = None) -> str:
    """Serialize every record of a tree to GEDCOM text."""
    tree = store.require_tree(tree_id)
    exporter = GedcomExporter(tree)
    return exporter.export(
        store.list_people(tree.id),
        store.list_families(tree.id),
        store.list_memberships(tree.id),
        export_date=export_date,
    )
