"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from family_history.core.models import Tree
from family_history.storage.store import TreeStore


# =============================================================================
# Sample Data Fixtures
# =============================================================================

GAASCH_GEDCOM = """0 HEAD
1 SOUR Test
1 GEDC
2 VERS 5.5.1
2 FORM LINEAGE-LINKED
1 CHAR UTF-8
1 SUBM @SUBM1@
0 @SUBM1@ SUBM
1 NAME Tester
0 @I1@ INDI
1 NAME Jean /Gaasch/
1 SEX M
1 BIRT
2 DATE ABT 1698
2 PLAC Alzingen
1 DEAT
2 DATE 12 MAR 1760
2 PLAC Hesperange
1 OCCU Farmer
1 NOTE line one
2 CONT line two
2 CONC continued
1 FAMS @F1@
0 @I2@ INDI
1 NAME Anne /Weber/
1 SEX F
1 FAMS @F1@
0 @I3@ INDI
1 NAME Pierre /Gaasch/
1 SEX M
1 BURI
2 PLAC Alzingen
1 FAMC @F1@
0 @F1@ FAM
1 HUSB @I1@
1 WIFE @I2@
1 CHIL @I3@
1 MARR
2 DATE 1720
2 PLAC Alzingen
0 TRLR
"""


def family_gedcom(children: list[str], husband: str = "@I1@", wife: str = "@I2@") -> str:
    """Build a small file with three individuals and one family."""
    lines = [
        "0 HEAD",
        "0 @I1@ INDI",
        "1 NAME Jean /Gaasch/",
        "0 @I2@ INDI",
        "1 NAME Anne /Weber/",
        "0 @I3@ INDI",
        "1 NAME Pierre /Gaasch/",
        "0 @I4@ INDI",
        "1 NAME Marie /Gaasch/",
        "0 @F1@ FAM",
        f"1 HUSB {husband}",
        f"1 WIFE {wife}",
    ]
    lines.extend(f"1 CHIL {child}" for child in children)
    lines.append("0 TRLR")
    return "\n".join(lines) + "\n"


@pytest.fixture
def build_family():
    """Factory for single-family GEDCOM text with the given children."""
    return family_gedcom


@pytest.fixture
def gaasch_gedcom() -> str:
    """GEDCOM text for a three-person family."""
    return GAASCH_GEDCOM


@pytest.fixture
def gaasch_gedcom_file(tmp_path: Path) -> Path:
    """The same family written to disk with CRLF line endings."""
    path = tmp_path / "gaasch.ged"
    path.write_bytes(GAASCH_GEDCOM.replace("\n", "\r\n").encode("utf-8"))
    return path


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def store() -> Generator[TreeStore, None, None]:
    """An in-memory store."""
    store = TreeStore(":memory:")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def tree(store: TreeStore) -> Tree:
    """An empty tree."""
    with store.session():
        return store.create_tree("gaasch", "Gaasch Family")


@pytest.fixture
def other_tree(store: TreeStore) -> Tree:
    """A second, unrelated tree in the same store."""
    with store.session():
        return store.create_tree("weber", "Weber Family")
