"""
GEDCOM import pipeline.

Runs strictly in order: parse, person batches, id map, family batches.
A file with no INDI or FAM records is rejected before anything is
written.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from family_history.core.exceptions import EmptyInputError
from family_history.core.gedcom import parse_gedcom
from family_history.storage.store import TreeStore
from family_history.sync.reconciler import DEFAULT_BATCH_SIZE, PersonReconciler
from family_history.sync.relationships import RelationshipSync

logger = logging.getLogger(__name__)


class ImportSummary(BaseModel):
    """Counts returned to the caller of a successful import."""
    model_config = ConfigDict(populate_by_name=True)

    people_imported: int = Field(alias="peopleImported")
    families_imported: int = Field(alias="familiesImported")
    skipped_orphans: int = Field(alias="skippedOrphans")


class GedcomImporter:
    """Imports GEDCOM text into one tree of a store."""

    def __init__(self, store: TreeStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def import_text(self, tree_id: str, text: str) -> ImportSummary:
        """
        Import GEDCOM text into a tree.

        Raises:
            RecordNotFoundError: The tree does not exist
            EmptyInputError: No individual or family records were found
            PersistenceError: A batch write failed
        """
        tree = self.store.require_tree(tree_id)

        parsed = parse_gedcom(text)
        if parsed.is_empty:
            raise EmptyInputError()

        logger.info(
            f"Importing {len(parsed.individuals)} individuals and "
            f"{len(parsed.families)} families into tree '{tree.slug}'"
        )

        reconciled = PersonReconciler(self.store, self.batch_size).upsert(tree.id, parsed.individuals)
        synced = RelationshipSync(self.store, self.batch_size).sync(
            tree.id, parsed.families, reconciled.person_ids
        )

        return ImportSummary(
            people_imported=len(parsed.individuals),
            families_imported=len(parsed.families),
            skipped_orphans=len(synced.orphans),
        )
