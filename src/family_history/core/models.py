"""
Core data models for tree-scoped genealogy records.

These models carry:
- Tree (tenant scope) records
- Person and family records with verbatim, unparsed genealogical text
- Child membership pairs
- The (tree, external id) composite key used for import reconciliation
"""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_record_id() -> str:
    """Allocate an opaque internal record id."""
    return uuid4().hex


class IdOrigin(str, Enum):
    """Where a record's identity came from."""
    INTERCHANGE = "interchange"  # Created by a GEDCOM import, carries an xref
    LOCAL = "local"              # Created by manual edit


# Fields written by import. Narrative is deliberately absent.
PERSON_STRUCTURAL_FIELDS: tuple[str, ...] = (
    "name",
    "sex",
    "birth_date",
    "birth_place",
    "death_date",
    "death_place",
    "burial_date",
    "burial_place",
    "occupation",
    "notes",
)

FAMILY_STRUCTURAL_FIELDS: tuple[str, ...] = (
    "husband_id",
    "wife_id",
    "marriage_date",
    "marriage_place",
)


class ExternalKey(BaseModel):
    """
    Composite lookup key for records that came from an interchange file.

    External ids are unique inside one tree only, so the tree is always
    part of the key.
    """
    model_config = ConfigDict(frozen=True)

    tree_id: str
    external_id: str


class Tree(BaseModel):
    """An isolated family tree (tenant scope)."""
    id: str = Field(default_factory=new_record_id)
    slug: str
    name: str

    @property
    def export_filename(self) -> str:
        return f"{self.slug}.ged"


class PersonRecord(BaseModel):
    """
    A persisted individual.

    Dates and places are kept as free text exactly as received. The name
    keeps the GEDCOM surname slashes ("Jean /Gaasch/").
    """
    id: str = Field(default_factory=new_record_id)
    tree_id: str
    external_id: str | None = None
    origin: IdOrigin = IdOrigin.LOCAL

    name: str = ""
    sex: str | None = None
    birth_date: str | None = None
    birth_place: str | None = None
    death_date: str | None = None
    death_place: str | None = None
    burial_date: str | None = None
    burial_place: str | None = None
    occupation: str | None = None
    notes: str | None = None

    # Written by the narrative collaborator or manual edit only
    narrative: str | None = None

    @property
    def key(self) -> ExternalKey | None:
        if self.external_id is None:
            return None
        return ExternalKey(tree_id=self.tree_id, external_id=self.external_id)

    @property
    def xref(self) -> str:
        """Identifier printed for this record in interchange output."""
        return export_xref(self.id, self.external_id, self.origin)


class FamilyRecord(BaseModel):
    """A persisted family: a couple plus marriage event."""
    id: str = Field(default_factory=new_record_id)
    tree_id: str
    external_id: str | None = None
    origin: IdOrigin = IdOrigin.LOCAL

    husband_id: str | None = None
    wife_id: str | None = None
    marriage_date: str | None = None
    marriage_place: str | None = None

    @property
    def key(self) -> ExternalKey | None:
        if self.external_id is None:
            return None
        return ExternalKey(tree_id=self.tree_id, external_id=self.external_id)

    @property
    def xref(self) -> str:
        return export_xref(self.id, self.external_id, self.origin)

    @property
    def spouse_ids(self) -> list[str]:
        return [pid for pid in (self.husband_id, self.wife_id) if pid]


class Membership(BaseModel):
    """A child-belongs-to-family pair."""
    model_config = ConfigDict(frozen=True)

    family_id: str
    person_id: str


def export_xref(record_id: str, external_id: str | None, origin: IdOrigin) -> str:
    """Imported records keep their xref; local records wrap the internal id."""
    if origin is IdOrigin.INTERCHANGE and external_id:
        return external_id
    return f"@{record_id}@"
