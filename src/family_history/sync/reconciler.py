"""
Person reconciliation for GEDCOM imports.

Maps each parsed individual onto the person in the same tree with the
same external id, creating one when none exists. Only structural fields
are written; the narrative column is never part of the write set.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Iterator, Sequence, TypeVar

from family_history.core.exceptions import PersistenceError
from family_history.core.gedcom import ParsedIndividual
from family_history.core.models import ExternalKey, IdOrigin, PersonRecord
from family_history.storage.store import TreeStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50

T = TypeVar("T")


def batched(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


@dataclass
class PersonIdMap:
    """
    External id to internal person id, for one import only.

    Built after every person batch has committed, then handed to
    relationship sync. Never cached beyond the import that built it.
    """
    ids: dict[str, str] = field(default_factory=dict)

    def resolve(self, xref: str | None) -> str | None:
        if not xref:
            return None
        return self.ids.get(xref)

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, xref: object) -> bool:
        return xref in self.ids


@dataclass
class ReconcileResult:
    """Outcome of reconciling one file's individuals."""
    person_ids: PersonIdMap
    created: int = 0
    updated: int = 0
    unchanged: int = 0


class PersonReconciler:
    """Upserts parsed individuals in independent, atomic batches."""

    def __init__(self, store: TreeStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def upsert(self, tree_id: str, individuals: Sequence[ParsedIndividual]) -> ReconcileResult:
        """
        Write every parsed individual, then build the id map.

        Raises:
            PersistenceError: A batch failed. Earlier batches stay committed.
        """
        result = ReconcileResult(person_ids=PersonIdMap())

        for index, batch in enumerate(batched(individuals, self.batch_size)):
            try:
                with self.store.session():
                    for parsed in batch:
                        self._upsert_one(tree_id, parsed, result)
            except sqlite3.Error as e:
                logger.error(f"Person batch {index} failed in tree {tree_id}: {e}")
                raise PersistenceError("Failed to save people", str(e), batch=index) from e

        result.person_ids = PersonIdMap(
            self.store.person_ids_for_keys(tree_id, (p.xref for p in individuals))
        )

        logger.info(
            f"Reconciled {len(individuals)} individuals: "
            f"{result.created} created, {result.updated} updated, {result.unchanged} unchanged"
        )
        return result

    def _upsert_one(self, tree_id: str, parsed: ParsedIndividual, result: ReconcileResult) -> None:
        fields = parsed.structural_fields()
        existing = self.store.find_person_by_key(ExternalKey(tree_id=tree_id, external_id=parsed.xref))

        if existing is None:
            self.store.create_person(PersonRecord(
                tree_id=tree_id,
                external_id=parsed.xref,
                origin=IdOrigin.INTERCHANGE,
                **fields,
            ))
            result.created += 1
            return

        changes = {name: value for name, value in fields.items() if getattr(existing, name) != value}
        if not changes:
            result.unchanged += 1
            return

        self.store.update_person(tree_id, existing.id, changes)
        result.updated += 1
