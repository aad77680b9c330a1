"""
Family and child membership synchronization for GEDCOM imports.

Each imported family's spouse references are resolved through the
person id map from reconciliation. Child membership is replaced
wholesale: existing rows are deleted and the set is rebuilt from the
file, so a child missing from the file is removed from the family.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from family_history.core.exceptions import PersistenceError
from family_history.core.gedcom import ParsedFamily
from family_history.core.models import ExternalKey, FamilyRecord, IdOrigin, Membership
from family_history.storage.store import TreeStore
from family_history.sync.reconciler import DEFAULT_BATCH_SIZE, PersonIdMap, batched

logger = logging.getLogger(__name__)


class ReferenceRole(str, Enum):
    """Which family link an unresolved xref came from."""
    HUSBAND = "HUSB"
    WIFE = "WIFE"
    CHILD = "CHIL"


@dataclass(frozen=True)
class OrphanReference:
    """A family cross-reference that matched no imported individual."""
    family_xref: str
    role: ReferenceRole
    xref: str


@dataclass
class SyncResult:
    """Outcome of synchronizing one file's families."""
    created: int = 0
    updated: int = 0
    memberships: int = 0
    orphans: list[OrphanReference] = field(default_factory=list)


class RelationshipSync:
    """Upserts families and rebuilds their child membership."""

    def __init__(self, store: TreeStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def sync(
        self,
        tree_id: str,
        families: Sequence[ParsedFamily],
        person_ids: PersonIdMap,
    ) -> SyncResult:
        """
        Write every parsed family and its children.

        Unresolved spouse and child references are collected as orphans,
        never raised.

        Raises:
            PersistenceError: A batch failed. Earlier batches stay committed.
        """
        result = SyncResult()

        for index, batch in enumerate(batched(families, self.batch_size)):
            try:
                with self.store.session():
                    for parsed in batch:
                        self._sync_one(tree_id, parsed, person_ids, result)
            except sqlite3.Error as e:
                logger.error(f"Family batch {index} failed in tree {tree_id}: {e}")
                raise PersistenceError("Failed to save families", str(e), batch=index) from e

        for orphan in result.orphans:
            logger.warning(
                f"Family {orphan.family_xref}: {orphan.role.value} {orphan.xref} "
                f"does not match any imported individual"
            )
        logger.info(
            f"Synchronized {len(families)} families: {result.created} created, "
            f"{result.updated} updated, {result.memberships} child links, "
            f"{len(result.orphans)} orphaned references"
        )
        return result

    def _sync_one(
        self,
        tree_id: str,
        parsed: ParsedFamily,
        person_ids: PersonIdMap,
        result: SyncResult,
    ) -> None:
        fields = {
            "husband_id": self._resolve(parsed, ReferenceRole.HUSBAND, parsed.husband_xref, person_ids, result),
            "wife_id": self._resolve(parsed, ReferenceRole.WIFE, parsed.wife_xref, person_ids, result),
            "marriage_date": parsed.marriage_date,
            "marriage_place": parsed.marriage_place,
        }

        existing = self.store.find_family_by_key(ExternalKey(tree_id=tree_id, external_id=parsed.xref))
        if existing is None:
            family = self.store.create_family(FamilyRecord(
                tree_id=tree_id,
                external_id=parsed.xref,
                origin=IdOrigin.INTERCHANGE,
                **fields,
            ))
            result.created += 1
        else:
            family = existing
            changes = {name: value for name, value in fields.items() if getattr(existing, name) != value}
            if changes:
                self.store.update_family(tree_id, existing.id, changes)
                result.updated += 1

        child_ids: list[str] = []
        for child_xref in parsed.child_xrefs:
            child_id = self._resolve(parsed, ReferenceRole.CHILD, child_xref, person_ids, result)
            if child_id and child_id not in child_ids:
                child_ids.append(child_id)

        self.store.delete_memberships(family.id)
        for child_id in child_ids:
            self.store.add_membership(tree_id, Membership(family_id=family.id, person_id=child_id))
        result.memberships += len(child_ids)

    @staticmethod
    def _resolve(
        parsed: ParsedFamily,
        role: ReferenceRole,
        xref: str | None,
        person_ids: PersonIdMap,
        result: SyncResult,
    ) -> str | None:
        if not xref:
            return None
        person_id = person_ids.resolve(xref)
        if person_id is None:
            result.orphans.append(OrphanReference(family_xref=parsed.xref, role=role, xref=xref))
        return person_id
