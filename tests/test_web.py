"""Tests for the HTTP API."""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from family_history.config import Settings
from family_history.storage.store import TreeStore
from family_history.web import app, get_settings, get_store


# =============================================================================
# Test App Setup
# =============================================================================


@pytest.fixture
def client(store: TreeStore) -> Generator[TestClient, None, None]:
    """Create a test client bound to the in-memory store."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: Settings(database_path=":memory:", import_batch_size=2)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tree_id(client: TestClient) -> str:
    response = client.post("/trees", json={"slug": "gaasch", "name": "Gaasch Family"})
    assert response.status_code == 201
    return response.json()["id"]


def upload(client: TestClient, tree_id: str, content: str | bytes):
    if isinstance(content, str):
        content = content.encode("utf-8")
    return client.post(
        f"/trees/{tree_id}/import/gedcom",
        files={"file": ("family.ged", content, "text/plain")},
    )


def find_person(client: TestClient, tree_id: str, store: TreeStore, xref: str) -> dict:
    person = next(p for p in store.list_people(tree_id) if p.external_id == xref)
    return client.get(f"/trees/{tree_id}/people/{person.id}").json()


# =============================================================================
# Health and Tree Endpoints
# =============================================================================


class TestTrees:
    """Tests for tree endpoints."""

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_and_get(self, client: TestClient, tree_id: str):
        response = client.get(f"/trees/{tree_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["tree"]["slug"] == "gaasch"
        assert data["people"] == 0

    def test_duplicate_slug(self, client: TestClient, tree_id: str):
        response = client.post("/trees", json={"slug": "gaasch", "name": "Again"})
        assert response.status_code == 409

    def test_invalid_slug(self, client: TestClient):
        response = client.post("/trees", json={"slug": "Not A Slug", "name": "X"})
        assert response.status_code == 422

    def test_unknown_tree(self, client: TestClient):
        response = client.get("/trees/missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Tree not found: missing"


# =============================================================================
# GEDCOM Endpoints
# =============================================================================


class TestGedcomUpload:
    """Tests for the import endpoint."""

    def test_summary(self, client: TestClient, tree_id: str, gaasch_gedcom: str):
        response = upload(client, tree_id, gaasch_gedcom)
        assert response.status_code == 200
        assert response.json() == {"peopleImported": 3, "familiesImported": 1, "skippedOrphans": 0}

    def test_orphan_counted(self, client: TestClient, tree_id: str, build_family):
        response = upload(client, tree_id, build_family(["@I3@", "@I8@"]))
        assert response.status_code == 200
        assert response.json()["skippedOrphans"] == 1

    def test_crlf_with_bom(self, client: TestClient, tree_id: str, gaasch_gedcom_file):
        response = upload(client, tree_id, b"\xef\xbb\xbf" + gaasch_gedcom_file.read_bytes())
        assert response.json()["peopleImported"] == 3

    def test_empty_file(self, client: TestClient, tree_id: str):
        response = upload(client, tree_id, "0 HEAD\n0 TRLR\n")
        assert response.status_code == 400
        assert response.json() == {"detail": "No INDI or FAM records found in file"}

    def test_missing_file(self, client: TestClient, tree_id: str):
        response = client.post(f"/trees/{tree_id}/import/gedcom")
        assert response.status_code == 400
        assert response.json()["detail"] == "No file provided"

    def test_unknown_tree(self, client: TestClient, gaasch_gedcom: str):
        response = upload(client, "missing", gaasch_gedcom)
        assert response.status_code == 404

    def test_narrative_survives_reupload(
        self,
        client: TestClient,
        store: TreeStore,
        tree_id: str,
        gaasch_gedcom: str,
    ):
        upload(client, tree_id, gaasch_gedcom)
        jean = find_person(client, tree_id, store, "@I1@")

        response = client.put(
            f"/trees/{tree_id}/people/{jean['id']}/narrative",
            json={"narrative": "Jean was a farmer in Alzingen."},
        )
        assert response.status_code == 200

        upload(client, tree_id, gaasch_gedcom.replace("Farmer", "Miller"))
        reloaded = client.get(f"/trees/{tree_id}/people/{jean['id']}").json()
        assert reloaded["narrative"] == "Jean was a farmer in Alzingen."
        assert reloaded["occupation"] == "Miller"


class TestGedcomDownload:
    """Tests for the export endpoint."""

    def test_download(self, client: TestClient, tree_id: str, gaasch_gedcom: str):
        upload(client, tree_id, gaasch_gedcom)
        response = client.get(f"/trees/{tree_id}/export/gedcom")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-disposition"] == 'attachment; filename="gaasch.ged"'

        body = response.text
        assert body.startswith("0 HEAD\r\n")
        assert body.endswith("0 TRLR\r\n")
        assert "0 @I1@ INDI\r\n1 NAME Jean /Gaasch/\r\n" in body
        assert "1 CHIL @I3@\r\n" in body

    def test_unknown_tree(self, client: TestClient):
        assert client.get("/trees/missing/export/gedcom").status_code == 404

    def test_local_person_uses_internal_id(self, client: TestClient, tree_id: str):
        created = client.post(f"/trees/{tree_id}/people", json={"name": "Hand /Entered/"}).json()
        body = client.get(f"/trees/{tree_id}/export/gedcom").text
        assert f"0 @{created['id']}@ INDI\r\n" in body


# =============================================================================
# Manual Edit Endpoints
# =============================================================================


class TestPeople:
    """Tests for person endpoints."""

    def test_create(self, client: TestClient, tree_id: str):
        response = client.post(
            f"/trees/{tree_id}/people",
            json={"name": "Marie /Gaasch/", "sex": "F", "birth_date": "1725"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["origin"] == "local"
        assert data["external_id"] is None
        assert data["birth_date"] == "1725"

    def test_update(self, client: TestClient, tree_id: str):
        person = client.post(f"/trees/{tree_id}/people", json={"name": "Old"}).json()
        response = client.patch(
            f"/trees/{tree_id}/people/{person['id']}",
            json={"name": "New", "occupation": "Weaver"},
        )
        assert response.status_code == 200
        assert response.json()["name"] == "New"
        assert response.json()["occupation"] == "Weaver"

    def test_update_missing(self, client: TestClient, tree_id: str):
        response = client.patch(f"/trees/{tree_id}/people/missing", json={"name": "X"})
        assert response.status_code == 404

    def test_narrative_missing_person(self, client: TestClient, tree_id: str):
        response = client.put(f"/trees/{tree_id}/people/missing/narrative", json={"narrative": "x"})
        assert response.status_code == 404

    def test_delete(self, client: TestClient, tree_id: str):
        person = client.post(f"/trees/{tree_id}/people", json={"name": "Temp"}).json()
        assert client.delete(f"/trees/{tree_id}/people/{person['id']}").status_code == 204
        assert client.get(f"/trees/{tree_id}/people/{person['id']}").status_code == 404

    def test_other_tree_is_invisible(self, client: TestClient, tree_id: str):
        person = client.post(f"/trees/{tree_id}/people", json={"name": "Mine"}).json()
        other = client.post("/trees", json={"slug": "weber", "name": "Weber Family"}).json()
        assert client.get(f"/trees/{other['id']}/people/{person['id']}").status_code == 404


class TestFamilies:
    """Tests for family endpoints."""

    @pytest.fixture
    def people(self, client: TestClient, tree_id: str) -> list[str]:
        return [
            client.post(f"/trees/{tree_id}/people", json={"name": name}).json()["id"]
            for name in ("Jean", "Anne", "Pierre", "Marie")
        ]

    def test_create_with_spouses(self, client: TestClient, tree_id: str, people: list[str]):
        response = client.post(
            f"/trees/{tree_id}/families",
            json={"husband_id": people[0], "wife_id": people[1], "marriage_date": "1720"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["husband_id"] == people[0]
        assert data["child_ids"] == []

    def test_create_with_unknown_spouse(self, client: TestClient, tree_id: str):
        response = client.post(f"/trees/{tree_id}/families", json={"husband_id": "missing"})
        assert response.status_code == 404

    def test_children(self, client: TestClient, tree_id: str, people: list[str]):
        family = client.post(f"/trees/{tree_id}/families", json={}).json()
        url = f"/trees/{tree_id}/families/{family['id']}/children"

        response = client.patch(url, json={"add": [people[2], people[3]]})
        assert response.status_code == 200
        assert response.json()["child_ids"] == sorted([people[2], people[3]])

        response = client.patch(url, json={"add": [people[2]], "remove": [people[3]]})
        assert response.json()["child_ids"] == [people[2]]

    def test_children_unknown_person(self, client: TestClient, tree_id: str):
        family = client.post(f"/trees/{tree_id}/families", json={}).json()
        response = client.patch(
            f"/trees/{tree_id}/families/{family['id']}/children",
            json={"add": ["missing"]},
        )
        assert response.status_code == 404

    def test_update_and_delete(self, client: TestClient, tree_id: str, people: list[str]):
        family = client.post(f"/trees/{tree_id}/families", json={"husband_id": people[0]}).json()
        url = f"/trees/{tree_id}/families/{family['id']}"

        response = client.patch(url, json={"wife_id": people[1], "marriage_place": "Alzingen"})
        assert response.status_code == 200
        assert response.json()["husband_id"] == people[0]
        assert response.json()["wife_id"] == people[1]

        assert client.delete(url).status_code == 204
        assert client.get(url).status_code == 404
