"""Import pipeline: person reconciliation and relationship sync."""

from family_history.sync.importer import GedcomImporter, ImportSummary
from family_history.sync.reconciler import PersonIdMap, PersonReconciler
from family_history.sync.relationships import OrphanReference, RelationshipSync

__all__ = [
    "GedcomImporter",
    "ImportSummary",
    "PersonIdMap",
    "PersonReconciler",
    "OrphanReference",
    "RelationshipSync",
]
