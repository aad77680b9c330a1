"""
GEDCOM 5.5.1 export.

Serializes one tree's persons, families and memberships. Output is
deterministic: records are written in ascending internal id order and
every reference list is sorted, so two exports of unchanged data are
byte-identical.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from family_history.core.gedcom import GedcomLine
from family_history.core.models import FamilyRecord, Membership, PersonRecord, Tree

LINE_TERMINATOR = "\r\n"

SOURCE_SYSTEM = "FamilyHistory"
SOURCE_NAME = "Family History"
SOURCE_VERSION = "0.1.0"
GEDCOM_VERSION = "5.5.1"
SUBMITTER_XREF = "@SUBM1@"

MONTHS = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN",
          "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]


def gedcom_date(value: date) -> str:
    """Format a calendar date as DD MMM YYYY."""
    return f"{value.day:02d} {MONTHS[value.month - 1]} {value.year}"


@dataclass
class ExportIndex:
    """Reverse lookups built once before any text is written."""
    families_as_child: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    families_as_spouse: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    children: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    person_xrefs: dict[str, str] = field(default_factory=dict)
    family_xrefs: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        people: Iterable[PersonRecord],
        families: Iterable[FamilyRecord],
        memberships: Iterable[Membership],
    ) -> ExportIndex:
        index = cls()

        for person in people:
            index.person_xrefs[person.id] = person.xref

        for family in sorted(families, key=lambda f: f.id):
            index.family_xrefs[family.id] = family.xref
            for spouse_id in family.spouse_ids:
                index.families_as_spouse[spouse_id].append(family.id)

        for link in sorted(memberships, key=lambda m: (m.family_id, m.person_id)):
            index.families_as_child[link.person_id].append(link.family_id)
            index.children[link.family_id].append(link.person_id)

        return index

    def person_xref(self, person_id: str) -> str:
        return self.person_xrefs.get(person_id, f"@{person_id}@")

    def family_xref(self, family_id: str) -> str:
        return self.family_xrefs.get(family_id, f"@{family_id}@")


class GedcomExporter:
    """Writes one tree as GEDCOM text."""

    def __init__(self, tree: Tree):
        self.tree = tree

    def export(
        self,
        people: Iterable[PersonRecord],
        families: Iterable[FamilyRecord],
        memberships: Iterable[Membership],
        export_date: date | None = None,
    ) -> str:
        """
        Serialize records to GEDCOM text with CRLF line endings.

        Args:
            people: Every person in the tree
            families: Every family in the tree
            memberships: Every child membership in the tree
            export_date: Date written to the header; defaults to today
        """
        people = sorted(people, key=lambda p: p.id)
        families = sorted(families, key=lambda f: f.id)
        index = ExportIndex.build(people, families, memberships)

        lines = self._header(export_date or date.today())
        for person in people:
            lines.extend(self._person_lines(person, index))
        for family in families:
            lines.extend(self._family_lines(family, index))
        lines.append(GedcomLine(level=0, tag="TRLR"))

        return "".join(line.to_string() + LINE_TERMINATOR for line in lines)

    def _header(self, export_date: date) -> list[GedcomLine]:
        return [
            GedcomLine(level=0, tag="HEAD"),
            GedcomLine(level=1, tag="SOUR", value=SOURCE_SYSTEM),
            GedcomLine(level=2, tag="NAME", value=SOURCE_NAME),
            GedcomLine(level=2, tag="VERS", value=SOURCE_VERSION),
            GedcomLine(level=1, tag="DATE", value=gedcom_date(export_date)),
            GedcomLine(level=1, tag="FILE", value=self.tree.export_filename),
            GedcomLine(level=1, tag="GEDC"),
            GedcomLine(level=2, tag="VERS", value=GEDCOM_VERSION),
            GedcomLine(level=2, tag="FORM", value="LINEAGE-LINKED"),
            GedcomLine(level=1, tag="CHAR", value="UTF-8"),
            GedcomLine(level=1, tag="LANG", value="English"),
            GedcomLine(level=1, tag="SUBM", value=SUBMITTER_XREF),
            GedcomLine(level=0, xref=SUBMITTER_XREF, tag="SUBM"),
            GedcomLine(level=1, tag="NAME", value=self.tree.name),
        ]

    def _person_lines(self, person: PersonRecord, index: ExportIndex) -> list[GedcomLine]:
        lines = [GedcomLine(level=0, xref=person.xref, tag="INDI")]

        if person.name:
            lines.append(GedcomLine(level=1, tag="NAME", value=person.name))
        if person.sex:
            lines.append(GedcomLine(level=1, tag="SEX", value=person.sex))

        lines.extend(_event_lines("BIRT", person.birth_date, person.birth_place))
        lines.extend(_event_lines("DEAT", person.death_date, person.death_place))
        lines.extend(_event_lines("BURI", person.burial_date, person.burial_place))

        if person.occupation:
            lines.append(GedcomLine(level=1, tag="OCCU", value=person.occupation))
        if person.notes:
            lines.extend(_note_lines(person.notes))

        for family_id in index.families_as_child.get(person.id, []):
            lines.append(GedcomLine(level=1, tag="FAMC", value=index.family_xref(family_id)))
        for family_id in index.families_as_spouse.get(person.id, []):
            lines.append(GedcomLine(level=1, tag="FAMS", value=index.family_xref(family_id)))

        return lines

    def _family_lines(self, family: FamilyRecord, index: ExportIndex) -> list[GedcomLine]:
        lines = [GedcomLine(level=0, xref=family.xref, tag="FAM")]

        if family.husband_id:
            lines.append(GedcomLine(level=1, tag="HUSB", value=index.person_xref(family.husband_id)))
        if family.wife_id:
            lines.append(GedcomLine(level=1, tag="WIFE", value=index.person_xref(family.wife_id)))
        for child_id in index.children.get(family.id, []):
            lines.append(GedcomLine(level=1, tag="CHIL", value=index.person_xref(child_id)))

        lines.extend(_event_lines("MARR", family.marriage_date, family.marriage_place))
        return lines


def _event_lines(tag: str, event_date: str | None, place: str | None) -> list[GedcomLine]:
    if not event_date and not place:
        return []
    lines = [GedcomLine(level=1, tag=tag)]
    if event_date:
        lines.append(GedcomLine(level=2, tag="DATE", value=event_date))
    if place:
        lines.append(GedcomLine(level=2, tag="PLAC", value=place))
    return lines


def _note_lines(notes: str) -> list[GedcomLine]:
    # Each embedded newline becomes a CONT line, the inverse of the parser
    first, *rest = notes.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    lines = [GedcomLine(level=1, tag="NOTE", value=first)]
    lines.extend(GedcomLine(level=2, tag="CONT", value=part) for part in rest)
    return lines
