"""
GEDCOM 5.5.1 interchange parsing.

Handles:
- Splitting raw text of any line-ending convention into tagged lines
- Recognizing INDI and FAM records by their level-0 header
- Tracking the active level-1 context for level-2 DATE/PLAC/CONT/CONC
- Degrading by omission: malformed lines and unknown tags are skipped
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

LINE_BREAK = re.compile(r"\r\n|\r|\n")

# One space separates tag and value; anything after it belongs to the value
LINE_PATTERN = re.compile(r"^(\d+)\s+(?:(@[^@]+@)\s+)?(\S+)(?: (.*))?$")


@dataclass
class GedcomLine:
    """A single parsed GEDCOM line."""
    level: int
    tag: str
    value: str = ""
    xref: str | None = None  # @I123@ style ID

    @classmethod
    def parse(cls, line: str) -> GedcomLine | None:
        """Parse a GEDCOM line."""
        line = line.strip()
        if not line:
            return None

        # Pattern: level [xref] tag [value]
        # Examples:
        #   0 @I1@ INDI
        #   1 NAME John /Smith/
        #   2 DATE 15 JAN 1862

        match = LINE_PATTERN.match(line)
        if not match:
            return None

        return cls(
            level=int(match.group(1)),
            tag=match.group(3),
            value=match.group(4) or "",
            xref=match.group(2),
        )

    def to_string(self) -> str:
        """Convert back to GEDCOM format."""
        parts = [str(self.level)]
        if self.xref:
            parts.append(self.xref)
        parts.append(self.tag)
        if self.value:
            parts.append(self.value)
        return " ".join(parts)


class RecordType(str, Enum):
    """Level-0 record types the importer understands."""
    INDIVIDUAL = "INDI"
    FAMILY = "FAM"


class EventContext(Enum):
    """Level-1 block that owns the level-2 lines following it."""
    NONE = "none"
    BIRTH = "BIRT"
    DEATH = "DEAT"
    BURIAL = "BURI"
    NOTE = "NOTE"
    MARRIAGE = "MARR"

    @classmethod
    def from_tag(cls, tag: str) -> EventContext:
        for context in cls:
            if context.value == tag:
                return context
        return cls.NONE


@dataclass
class ParsedIndividual:
    """An INDI record as read from the file. Values are verbatim text."""
    xref: str
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

    _EVENT_FIELDS = {
        EventContext.BIRTH: ("birth_date", "birth_place"),
        EventContext.DEATH: ("death_date", "death_place"),
        EventContext.BURIAL: ("burial_date", "burial_place"),
    }

    def apply(self, line: GedcomLine, context: EventContext) -> None:
        if line.level == 1:
            if line.tag == "NAME":
                self.name = line.value
            elif line.tag == "SEX":
                self.sex = line.value or None
            elif line.tag == "OCCU":
                self.occupation = line.value or None
            elif line.tag == "NOTE":
                self.notes = line.value or None
        elif line.level == 2:
            if context is EventContext.NOTE:
                if line.tag == "CONT":
                    self.notes = (self.notes or "") + "\n" + line.value
                elif line.tag == "CONC":
                    self.notes = (self.notes or "") + line.value
            elif context in self._EVENT_FIELDS:
                _set_date_or_place(self, self._EVENT_FIELDS[context], line)

    def structural_fields(self) -> dict[str, str | None]:
        """Field values written to the person record on import."""
        return {
            "name": self.name,
            "sex": self.sex,
            "birth_date": self.birth_date,
            "birth_place": self.birth_place,
            "death_date": self.death_date,
            "death_place": self.death_place,
            "burial_date": self.burial_date,
            "burial_place": self.burial_place,
            "occupation": self.occupation,
            "notes": self.notes,
        }


@dataclass
class ParsedFamily:
    """A FAM record as read from the file, with xref cross-references."""
    xref: str
    husband_xref: str | None = None
    wife_xref: str | None = None
    marriage_date: str | None = None
    marriage_place: str | None = None
    child_xrefs: list[str] = field(default_factory=list)

    def apply(self, line: GedcomLine, context: EventContext) -> None:
        if line.level == 1:
            if line.tag == "HUSB":
                self.husband_xref = line.value or None
            elif line.tag == "WIFE":
                self.wife_xref = line.value or None
            elif line.tag == "CHIL" and line.value:
                self.child_xrefs.append(line.value)
        elif line.level == 2 and context is EventContext.MARRIAGE:
            _set_date_or_place(self, ("marriage_date", "marriage_place"), line)


def _set_date_or_place(record: object, attrs: tuple[str, str], line: GedcomLine) -> None:
    date_attr, place_attr = attrs
    if line.tag == "DATE":
        setattr(record, date_attr, line.value or None)
    elif line.tag == "PLAC":
        setattr(record, place_attr, line.value or None)


@dataclass
class ParsedGedcom:
    """Ordered records recognized in one interchange text."""
    individuals: list[ParsedIndividual] = field(default_factory=list)
    families: list[ParsedFamily] = field(default_factory=list)
    skipped_lines: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.individuals and not self.families


class GedcomParser:
    """
    Line-oriented state machine over GEDCOM text.

    A level-0 line either opens an INDI/FAM record or closes the current
    one. Inside a record, each level-1 line sets the active context that
    level-2 lines are read against. The parser never raises on bad input.
    """

    def __init__(self):
        self.result = ParsedGedcom()
        self._current: ParsedIndividual | ParsedFamily | None = None
        self._context = EventContext.NONE

    def parse(self, text: str) -> ParsedGedcom:
        self.result = ParsedGedcom()
        self._current = None
        self._context = EventContext.NONE

        if text.startswith("\ufeff"):
            text = text[1:]

        for raw in LINE_BREAK.split(text):
            if not raw.strip():
                continue
            line = GedcomLine.parse(raw)
            if line is None:
                self.result.skipped_lines += 1
                continue
            self._feed(line)

        if self.result.skipped_lines:
            logger.debug(f"Skipped {self.result.skipped_lines} malformed GEDCOM lines")
        return self.result

    def _feed(self, line: GedcomLine) -> None:
        if line.level == 0:
            self._open_record(line)
            return

        if self._current is None:
            return

        if line.level == 1:
            self._context = EventContext.from_tag(line.tag)

        self._current.apply(line, self._context)

    def _open_record(self, line: GedcomLine) -> None:
        self._current = None
        self._context = EventContext.NONE

        if not line.xref:
            return

        if line.tag == RecordType.INDIVIDUAL.value:
            self._current = ParsedIndividual(xref=line.xref)
            self.result.individuals.append(self._current)
        elif line.tag == RecordType.FAMILY.value:
            self._current = ParsedFamily(xref=line.xref)
            self.result.families.append(self._current)


def parse_gedcom(text: str) -> ParsedGedcom:
    """Parse GEDCOM text into ordered individual and family records."""
    return GedcomParser().parse(text)
