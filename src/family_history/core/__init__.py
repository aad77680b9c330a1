"""Core models, parsing and export for GEDCOM interchange."""

from family_history.core.models import (
    ExternalKey,
    FamilyRecord,
    IdOrigin,
    Membership,
    PersonRecord,
    Tree,
)
from family_history.core.exceptions import (
    ConfigError,
    EmptyInputError,
    FamilyHistoryError,
    PersistenceError,
    RecordNotFoundError,
)
from family_history.core.gedcom import EventContext, GedcomParser, ParsedGedcom, parse_gedcom
from family_history.core.export import GedcomExporter

__all__ = [
    "ExternalKey",
    "FamilyRecord",
    "IdOrigin",
    "Membership",
    "PersonRecord",
    "Tree",
    "ConfigError",
    "EmptyInputError",
    "FamilyHistoryError",
    "PersistenceError",
    "RecordNotFoundError",
    "EventContext",
    "GedcomParser",
    "ParsedGedcom",
    "parse_gedcom",
    "GedcomExporter",
]
