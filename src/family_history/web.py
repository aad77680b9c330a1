"""
FastAPI web service for tree-scoped family history records.

Provides REST endpoints for GEDCOM import/export and manual edits.
Callers are expected to be authorized for the tree before reaching
these endpoints.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from family_history import __version__
from family_history.config import Settings, load_settings, setup_logging
from family_history.core.exceptions import (
    EmptyInputError,
    PersistenceError,
    RecordNotFoundError,
)
from family_history.core.models import FamilyRecord, IdOrigin, Membership, PersonRecord, Tree
from family_history.interchange import decode_upload, export_gedcom, import_gedcom
from family_history.storage.store import TreeStore
from family_history.sync.importer import ImportSummary

logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

# Global instances
_settings: Settings | None = None
_store: TreeStore | None = None


def get_settings() -> Settings:
    """Get or load settings."""
    global _settings
    if _settings is None:
        _settings = load_settings(os.getenv("FAMILY_HISTORY_CONFIG"))
    return _settings


def get_store() -> TreeStore:
    """Get the connected store."""
    if _store is None:
        raise HTTPException(status_code=503, detail="Store not initialized")
    return _store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup and close it on shutdown."""
    global _store

    settings = get_settings()
    setup_logging(settings)

    _store = TreeStore(settings.database_path)
    _store.connect()
    logger.info(f"Store ready at {settings.database_path}")

    yield

    if _store:
        _store.close()
        _store = None


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Family History API",
    description="Private, multi-tree genealogy records with GEDCOM import and export.",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(EmptyInputError)
async def empty_input_handler(request: Request, exc: EmptyInputError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": exc.message})


# =============================================================================
# Request/Response Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str


class TreeCreate(BaseModel):
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9][a-z0-9-]*$", description="URL-safe tree name")
    name: str = Field(..., min_length=1, description="Display name")


class PersonFields(BaseModel):
    name: str | None = None
    sex: str | None = None
    birth_date: str | None = None
    birth_place: str | None = None
    death_date: str | None = None
    death_place: str | None = None
    burial_date: str | None = None
    burial_place: str | None = None
    occupation: str | None = None
    notes: str | None = None
    narrative: str | None = None


class FamilyFields(BaseModel):
    husband_id: str | None = None
    wife_id: str | None = None
    marriage_date: str | None = None
    marriage_place: str | None = None


class NarrativeUpdate(BaseModel):
    narrative: str | None = Field(None, description="Biography text; null clears it")


class ChildrenUpdate(BaseModel):
    add: list[str] = Field(default_factory=list, description="Person ids to add as children")
    remove: list[str] = Field(default_factory=list, description="Person ids to remove")


class FamilyDetail(FamilyRecord):
    child_ids: list[str] = Field(default_factory=list)


class TreeStats(BaseModel):
    tree: Tree
    people: int
    families: int
    memberships: int
    narratives: int


def _family_detail(store: TreeStore, family: FamilyRecord) -> FamilyDetail:
    return FamilyDetail(**family.model_dump(), child_ids=store.children_of(family.id))


# =============================================================================
# Health Endpoints
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(),
        version=__version__,
    )


# =============================================================================
# Tree Endpoints
# =============================================================================

@app.post("/trees", response_model=Tree, status_code=201, tags=["Trees"])
async def create_tree(request: TreeCreate, store: TreeStore = Depends(get_store)):
    """Create an empty tree."""
    try:
        with store.session():
            tree = store.create_tree(request.slug, request.name)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail=f"Tree slug already in use: {request.slug}")
    return tree


@app.get("/trees/{tree_id}", response_model=TreeStats, tags=["Trees"])
async def get_tree(tree_id: str, store: TreeStore = Depends(get_store)):
    """Get a tree with record counts."""
    tree = store.require_tree(tree_id)
    return TreeStats(tree=tree, **store.get_statistics(tree.id))


# =============================================================================
# GEDCOM Endpoints
# =============================================================================

@app.post("/trees/{tree_id}/import/gedcom", response_model=ImportSummary, tags=["GEDCOM"])
async def upload_gedcom(
    tree_id: str,
    file: UploadFile | None = File(None),
    store: TreeStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """
    Import a GEDCOM file into a tree.

    Records are matched to existing ones by GEDCOM id. Narratives are
    never overwritten. Unresolved spouse or child references are counted
    in ``skippedOrphans`` rather than failing the import.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    store.require_tree(tree_id)
    content = await file.read()

    summary = import_gedcom(
        store,
        tree_id,
        decode_upload(content),
        batch_size=settings.import_batch_size,
    )
    logger.info(
        f"Imported {file.filename} into tree {tree_id}: "
        f"{summary.people_imported} people, {summary.families_imported} families, "
        f"{summary.skipped_orphans} orphaned references"
    )
    return summary


@app.get("/trees/{tree_id}/export/gedcom", tags=["GEDCOM"])
async def download_gedcom(tree_id: str, store: TreeStore = Depends(get_store)):
    """Download a tree as a GEDCOM file."""
    tree = store.require_tree(tree_id)
    content = export_gedcom(store, tree.id)

    return Response(
        content=content,
        media_type="text/plain",
        headers={"Content-Disposition": f'attachment; filename="{tree.export_filename}"'},
    )


# =============================================================================
# Person Endpoints
# =============================================================================

@app.post("/trees/{tree_id}/people", response_model=PersonRecord, status_code=201, tags=["People"])
async def create_person(tree_id: str, request: PersonFields, store: TreeStore = Depends(get_store)):
    """Create a person by hand. It has no GEDCOM id until exported."""
    store.require_tree(tree_id)
    fields = request.model_dump(exclude_unset=True)
    fields["name"] = fields.get("name") or ""

    person = PersonRecord(tree_id=tree_id, origin=IdOrigin.LOCAL, **fields)
    with store.session():
        store.create_person(person)
    return person


@app.get("/trees/{tree_id}/people/{person_id}", response_model=PersonRecord, tags=["People"])
async def get_person(tree_id: str, person_id: str, store: TreeStore = Depends(get_store)):
    person = store.get_person(tree_id, person_id)
    if person is None:
        raise RecordNotFoundError("person", person_id)
    return person


@app.patch("/trees/{tree_id}/people/{person_id}", response_model=PersonRecord, tags=["People"])
async def update_person(
    tree_id: str,
    person_id: str,
    request: PersonFields,
    store: TreeStore = Depends(get_store),
):
    """Update the given fields of a person."""
    fields = request.model_dump(exclude_unset=True)
    if "name" in fields and fields["name"] is None:
        fields["name"] = ""

    with store.session():
        if not store.update_person(tree_id, person_id, fields):
            raise RecordNotFoundError("person", person_id)
    return store.get_person(tree_id, person_id)


@app.put("/trees/{tree_id}/people/{person_id}/narrative", response_model=PersonRecord, tags=["People"])
async def set_narrative(
    tree_id: str,
    person_id: str,
    request: NarrativeUpdate,
    store: TreeStore = Depends(get_store),
):
    """Store a generated or hand-written narrative."""
    with store.session():
        store.set_narrative(tree_id, person_id, request.narrative)
    return store.get_person(tree_id, person_id)


@app.delete("/trees/{tree_id}/people/{person_id}", status_code=204, tags=["People"])
async def delete_person(tree_id: str, person_id: str, store: TreeStore = Depends(get_store)):
    """Delete a person, their child links and any spouse references to them."""
    with store.session():
        if not store.delete_person(tree_id, person_id):
            raise RecordNotFoundError("person", person_id)
    return Response(status_code=204)


# =============================================================================
# Family Endpoints
# =============================================================================

@app.post("/trees/{tree_id}/families", response_model=FamilyDetail, status_code=201, tags=["Families"])
async def create_family(tree_id: str, request: FamilyFields, store: TreeStore = Depends(get_store)):
    store.require_tree(tree_id)
    family = FamilyRecord(tree_id=tree_id, origin=IdOrigin.LOCAL, **request.model_dump())
    with store.session():
        store.create_family(family)
    return _family_detail(store, family)


@app.get("/trees/{tree_id}/families/{family_id}", response_model=FamilyDetail, tags=["Families"])
async def get_family(tree_id: str, family_id: str, store: TreeStore = Depends(get_store)):
    family = store.get_family(tree_id, family_id)
    if family is None:
        raise RecordNotFoundError("family", family_id)
    return _family_detail(store, family)


@app.patch("/trees/{tree_id}/families/{family_id}", response_model=FamilyDetail, tags=["Families"])
async def update_family(
    tree_id: str,
    family_id: str,
    request: FamilyFields,
    store: TreeStore = Depends(get_store),
):
    with store.session():
        if not store.update_family(tree_id, family_id, request.model_dump(exclude_unset=True)):
            raise RecordNotFoundError("family", family_id)
    return _family_detail(store, store.get_family(tree_id, family_id))


@app.patch("/trees/{tree_id}/families/{family_id}/children", response_model=FamilyDetail, tags=["Families"])
async def update_children(
    tree_id: str,
    family_id: str,
    request: ChildrenUpdate,
    store: TreeStore = Depends(get_store),
):
    """Add and remove children one by one. Adding an existing child is a no-op."""
    family = store.get_family(tree_id, family_id)
    if family is None:
        raise RecordNotFoundError("family", family_id)

    with store.session():
        for person_id in request.add:
            store.add_membership(tree_id, Membership(family_id=family_id, person_id=person_id))
        for person_id in request.remove:
            store.remove_membership(Membership(family_id=family_id, person_id=person_id))
    return _family_detail(store, family)


@app.delete("/trees/{tree_id}/families/{family_id}", status_code=204, tags=["Families"])
async def delete_family(tree_id: str, family_id: str, store: TreeStore = Depends(get_store)):
    with store.session():
        if not store.delete_family(tree_id, family_id):
            raise RecordNotFoundError("family", family_id)
    return Response(status_code=204)


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
