"""
SQLite-backed record store.

Holds trees, persons, families and child memberships. Every query is
scoped to a tree. Primitive methods do not commit: callers group writes
with ``session()``, which commits on success and rolls back on error.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable

from family_history.core.exceptions import RecordNotFoundError
from family_history.core.models import (
    FAMILY_STRUCTURAL_FIELDS,
    PERSON_STRUCTURAL_FIELDS,
    ExternalKey,
    FamilyRecord,
    Membership,
    PersonRecord,
    Tree,
)

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS tree (
    id          TEXT PRIMARY KEY,
    slug        TEXT NOT NULL UNIQUE,
    name        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS person (
    id              TEXT PRIMARY KEY,
    tree_id         TEXT NOT NULL REFERENCES tree(id) ON DELETE CASCADE,
    external_id     TEXT,
    origin          TEXT NOT NULL,
    name            TEXT NOT NULL DEFAULT '',
    sex             TEXT,
    birth_date      TEXT,
    birth_place     TEXT,
    death_date      TEXT,
    death_place     TEXT,
    burial_date     TEXT,
    burial_place    TEXT,
    occupation      TEXT,
    notes           TEXT,
    narrative       TEXT,
    UNIQUE (tree_id, external_id)
);

CREATE TABLE IF NOT EXISTS family (
    id              TEXT PRIMARY KEY,
    tree_id         TEXT NOT NULL REFERENCES tree(id) ON DELETE CASCADE,
    external_id     TEXT,
    origin          TEXT NOT NULL,
    husband_id      TEXT REFERENCES person(id) ON DELETE SET NULL,
    wife_id         TEXT REFERENCES person(id) ON DELETE SET NULL,
    marriage_date   TEXT,
    marriage_place  TEXT,
    UNIQUE (tree_id, external_id)
);

CREATE TABLE IF NOT EXISTS membership (
    family_id   TEXT NOT NULL REFERENCES family(id) ON DELETE CASCADE,
    person_id   TEXT NOT NULL REFERENCES person(id) ON DELETE CASCADE,
    PRIMARY KEY (family_id, person_id)
);

CREATE INDEX IF NOT EXISTS idx_membership_person ON membership(person_id);
"""

PERSON_COLUMNS = ("id", "tree_id", "external_id", "origin", *PERSON_STRUCTURAL_FIELDS, "narrative")
FAMILY_COLUMNS = ("id", "tree_id", "external_id", "origin", *FAMILY_STRUCTURAL_FIELDS)

# Columns a caller may change after creation
PERSON_EDITABLE = frozenset((*PERSON_STRUCTURAL_FIELDS, "narrative"))
FAMILY_EDITABLE = frozenset(FAMILY_STRUCTURAL_FIELDS)


class TreeStore:
    """
    Store for tree-scoped genealogy records.

    Provides create, update, delete-by-key, find-by-external-key and
    find-by-id primitives for persons, families and memberships.
    """

    def __init__(self, db_path: str | Path | None = None):
        """
        Initialize store.

        Args:
            db_path: Path to the SQLite file, or ":memory:"
        """
        self.db_path = str(db_path) if db_path else None
        self._conn: sqlite3.Connection | None = None

    def connect(self, db_path: str | Path | None = None) -> None:
        """
        Open the database and create the schema if needed.

        Args:
            db_path: Path to database (overrides constructor path)
        """
        path = str(db_path) if db_path else self.db_path
        if not path:
            raise ValueError("No database path provided")

        if path != MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)
        logger.debug(f"Connected to store at {path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if not self._conn:
            raise RuntimeError("Not connected to database")
        return self._conn

    @contextmanager
    def session(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for one atomic unit of work."""
        conn = self.conn
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    # =========================================
    # Tree Operations
    # =========================================

    def create_tree(self, slug: str, name: str) -> Tree:
        tree = Tree(slug=slug, name=name)
        self.conn.execute(
            "INSERT INTO tree (id, slug, name) VALUES (?, ?, ?)",
            (tree.id, tree.slug, tree.name),
        )
        return tree

    def get_tree(self, tree_id: str) -> Tree | None:
        row = self.conn.execute("SELECT * FROM tree WHERE id = ?", (tree_id,)).fetchone()
        return Tree(**dict(row)) if row else None

    def get_tree_by_slug(self, slug: str) -> Tree | None:
        row = self.conn.execute("SELECT * FROM tree WHERE slug = ?", (slug,)).fetchone()
        return Tree(**dict(row)) if row else None

    def require_tree(self, tree_id: str) -> Tree:
        tree = self.get_tree(tree_id)
        if tree is None:
            raise RecordNotFoundError("tree", tree_id)
        return tree

    def get_statistics(self, tree_id: str) -> dict[str, int]:
        """Count records in one tree."""
        people = self.conn.execute(
            "SELECT COUNT(*) FROM person WHERE tree_id = ?", (tree_id,)
        ).fetchone()[0]
        families = self.conn.execute(
            "SELECT COUNT(*) FROM family WHERE tree_id = ?", (tree_id,)
        ).fetchone()[0]
        memberships = self.conn.execute(
            "SELECT COUNT(*) FROM membership m JOIN family f ON f.id = m.family_id "
            "WHERE f.tree_id = ?",
            (tree_id,),
        ).fetchone()[0]
        narratives = self.conn.execute(
            "SELECT COUNT(*) FROM person WHERE tree_id = ? AND narrative IS NOT NULL",
            (tree_id,),
        ).fetchone()[0]
        return {
            "people": people,
            "families": families,
            "memberships": memberships,
            "narratives": narratives,
        }

    # =========================================
    # Person Operations
    # =========================================

    def create_person(self, person: PersonRecord) -> PersonRecord:
        self._insert("person", PERSON_COLUMNS, person.model_dump(mode="json"))
        return person

    def get_person(self, tree_id: str, person_id: str) -> PersonRecord | None:
        row = self.conn.execute(
            "SELECT * FROM person WHERE tree_id = ? AND id = ?", (tree_id, person_id)
        ).fetchone()
        return PersonRecord(**dict(row)) if row else None

    def find_person_by_key(self, key: ExternalKey) -> PersonRecord | None:
        """Return the person in ``key.tree_id`` whose external id is exactly ``key.external_id``."""
        row = self.conn.execute(
            "SELECT * FROM person WHERE tree_id = ? AND external_id = ?",
            (key.tree_id, key.external_id),
        ).fetchone()
        return PersonRecord(**dict(row)) if row else None

    def person_ids_for_keys(self, tree_id: str, external_ids: Iterable[str]) -> dict[str, str]:
        """Map external ids to internal person ids within a tree."""
        mapping: dict[str, str] = {}
        for external_id in set(external_ids):
            person = self.find_person_by_key(ExternalKey(tree_id=tree_id, external_id=external_id))
            if person is not None:
                mapping[external_id] = person.id
        return mapping

    def update_person(self, tree_id: str, person_id: str, fields: dict[str, Any]) -> bool:
        return self._update("person", PERSON_EDITABLE, tree_id, person_id, fields)

    def set_narrative(self, tree_id: str, person_id: str, narrative: str | None) -> None:
        """Write the narrative field. Import never calls this."""
        if not self.update_person(tree_id, person_id, {"narrative": narrative}):
            raise RecordNotFoundError("person", person_id)

    def delete_person(self, tree_id: str, person_id: str) -> bool:
        cursor = self.conn.execute(
            "DELETE FROM person WHERE tree_id = ? AND id = ?", (tree_id, person_id)
        )
        return cursor.rowcount > 0

    def list_people(self, tree_id: str) -> list[PersonRecord]:
        rows = self.conn.execute(
            "SELECT * FROM person WHERE tree_id = ? ORDER BY id", (tree_id,)
        ).fetchall()
        return [PersonRecord(**dict(row)) for row in rows]

    # =========================================
    # Family Operations
    # =========================================

    def create_family(self, family: FamilyRecord) -> FamilyRecord:
        self._check_spouses(family.tree_id, family.husband_id, family.wife_id)
        self._insert("family", FAMILY_COLUMNS, family.model_dump(mode="json"))
        return family

    def get_family(self, tree_id: str, family_id: str) -> FamilyRecord | None:
        row = self.conn.execute(
            "SELECT * FROM family WHERE tree_id = ? AND id = ?", (tree_id, family_id)
        ).fetchone()
        return FamilyRecord(**dict(row)) if row else None

    def find_family_by_key(self, key: ExternalKey) -> FamilyRecord | None:
        """Return the family in ``key.tree_id`` whose external id is exactly ``key.external_id``."""
        row = self.conn.execute(
            "SELECT * FROM family WHERE tree_id = ? AND external_id = ?",
            (key.tree_id, key.external_id),
        ).fetchone()
        return FamilyRecord(**dict(row)) if row else None

    def update_family(self, tree_id: str, family_id: str, fields: dict[str, Any]) -> bool:
        self._check_spouses(tree_id, fields.get("husband_id"), fields.get("wife_id"))
        return self._update("family", FAMILY_EDITABLE, tree_id, family_id, fields)

    def delete_family(self, tree_id: str, family_id: str) -> bool:
        cursor = self.conn.execute(
            "DELETE FROM family WHERE tree_id = ? AND id = ?", (tree_id, family_id)
        )
        return cursor.rowcount > 0

    def list_families(self, tree_id: str) -> list[FamilyRecord]:
        rows = self.conn.execute(
            "SELECT * FROM family WHERE tree_id = ? ORDER BY id", (tree_id,)
        ).fetchall()
        return [FamilyRecord(**dict(row)) for row in rows]

    def _check_spouses(self, tree_id: str, *person_ids: str | None) -> None:
        for person_id in person_ids:
            if person_id and self.get_person(tree_id, person_id) is None:
                raise RecordNotFoundError("person", person_id)

    # =========================================
    # Membership Operations
    # =========================================

    def add_membership(self, tree_id: str, membership: Membership) -> None:
        """Add a child to a family. Both must belong to ``tree_id``."""
        if self.get_family(tree_id, membership.family_id) is None:
            raise RecordNotFoundError("family", membership.family_id)
        if self.get_person(tree_id, membership.person_id) is None:
            raise RecordNotFoundError("person", membership.person_id)
        self.conn.execute(
            "INSERT OR IGNORE INTO membership (family_id, person_id) VALUES (?, ?)",
            (membership.family_id, membership.person_id),
        )

    def remove_membership(self, membership: Membership) -> bool:
        cursor = self.conn.execute(
            "DELETE FROM membership WHERE family_id = ? AND person_id = ?",
            (membership.family_id, membership.person_id),
        )
        return cursor.rowcount > 0

    def delete_memberships(self, family_id: str) -> int:
        """Remove every child from a family."""
        cursor = self.conn.execute("DELETE FROM membership WHERE family_id = ?", (family_id,))
        return cursor.rowcount

    def children_of(self, family_id: str) -> list[str]:
        rows = self.conn.execute(
            "SELECT person_id FROM membership WHERE family_id = ? ORDER BY person_id",
            (family_id,),
        ).fetchall()
        return [row["person_id"] for row in rows]

    def list_memberships(self, tree_id: str) -> list[Membership]:
        rows = self.conn.execute(
            "SELECT m.family_id, m.person_id FROM membership m "
            "JOIN family f ON f.id = m.family_id "
            "WHERE f.tree_id = ? ORDER BY m.family_id, m.person_id",
            (tree_id,),
        ).fetchall()
        return [Membership(family_id=row["family_id"], person_id=row["person_id"]) for row in rows]

    # =========================================
    # Helpers
    # =========================================

    def _insert(self, table: str, columns: tuple[str, ...], data: dict[str, Any]) -> None:
        placeholders = ", ".join("?" for _ in columns)
        self.conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(data[column] for column in columns),
        )

    def _update(
        self,
        table: str,
        editable: frozenset[str],
        tree_id: str,
        record_id: str,
        fields: dict[str, Any],
    ) -> bool:
        unknown = set(fields) - editable
        if unknown:
            raise ValueError(f"Cannot update {table} fields: {', '.join(sorted(unknown))}")
        if not fields:
            row = self.conn.execute(
                f"SELECT 1 FROM {table} WHERE tree_id = ? AND id = ?", (tree_id, record_id)
            ).fetchone()
            return row is not None

        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        cursor = self.conn.execute(
            f"UPDATE {table} SET {assignments} WHERE tree_id = ? AND id = ?",
            (*(fields[column] for column in columns), tree_id, record_id),
        )
        return cursor.rowcount > 0

    def __enter__(self):
        """Context manager entry."""
        if not self._conn:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
