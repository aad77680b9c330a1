"""
Family History

Private, multi-tree genealogy record keeping with GEDCOM import and export.
"""

__version__ = "0.1.0"

from family_history.core.models import (
    ExternalKey,
    FamilyRecord,
    IdOrigin,
    Membership,
    PersonRecord,
    Tree,
)
from family_history.storage.store import TreeStore
from family_history.interchange import export_gedcom, import_gedcom

__all__ = [
    "ExternalKey",
    "FamilyRecord",
    "IdOrigin",
    "Membership",
    "PersonRecord",
    "Tree",
    "TreeStore",
    "export_gedcom",
    "import_gedcom",
]
