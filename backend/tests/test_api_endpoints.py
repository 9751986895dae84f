"""Integration tests for the FastAPI endpoints.

Tests the full HTTP flow against an in-memory database: admin seeds the
catalog -> users browse and search -> users submit -> reviewers approve or
reject. Verifies status codes, response shapes and the ErrorResponse body.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from propcat.api.deps import get_favorites_store
from propcat.errors import StoreError
from propcat.main import app
from propcat.models.db import Favorite, SearchLog

MEMBER = {"X-User-Id": "7"}
OTHER_MEMBER = {"X-User-Id": "8"}
ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}


class _UnavailableFavorites:
    async def favorite_ids(self, user_id: int) -> set[int]:
        raise StoreError()


def _payload(seeded, name="Oak Chair", price=120, categories=("seating",), tags=()):
    return {
        "name": name,
        "price": price,
        "category_ids": [seeded[c] for c in categories],
        "tag_ids": [seeded[t] for t in tags],
    }


async def _create(client, seeded, **kwargs) -> dict:
    resp = await client.post("/api/v1/admin/furniture", json=_payload(seeded, **kwargs), headers=ADMIN)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _submit(client, seeded, headers=MEMBER, **kwargs) -> dict:
    resp = await client.post(
        "/api/v1/submissions",
        json={"type": "new", "payload": _payload(seeded, **kwargs)},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["submission"]


class TestListFurniture:
    """GET /api/v1/furniture"""

    @pytest.mark.asyncio
    async def test_scenario_sort_by_price(self, client, seeded):
        """Scenario A: sort=price&order=desc puts Metal Chair first."""
        await _create(client, seeded, name="Wooden Chair", price=100)
        await _create(client, seeded, name="Metal Chair", price=150)
        resp = await client.get("/api/v1/furniture", params={"sort": "price", "order": "desc"})
        assert resp.status_code == 200
        body = resp.json()
        assert [i["name"] for i in body["items"]] == ["Metal Chair", "Wooden Chair"]
        assert body["pagination"] == {"page": 1, "per_page": 24, "total": 2, "total_pages": 1}
        assert body["degraded"] is False

    @pytest.mark.asyncio
    async def test_item_shape(self, client, seeded):
        """Items carry flattened primary category fields, categories and tags."""
        await _create(client, seeded, categories=("seating", "storage"), tags=("wood",))
        item = (await client.get("/api/v1/furniture")).json()["items"][0]
        assert item["category_slug"] == "seating"
        assert [c["is_primary"] for c in item["categories"]] == [True, False]
        assert [t["slug"] for t in item["tags"]] == ["wood"]

    @pytest.mark.asyncio
    async def test_tag_filter(self, client, seeded):
        """tags= is comma-joined and requires every tag."""
        await _create(client, seeded, name="Rustic Bench", tags=("rustic", "wood"))
        await _create(client, seeded, name="Rustic Stool", tags=("rustic",))
        resp = await client.get("/api/v1/furniture", params={"tags": "rustic,wood"})
        assert [i["name"] for i in resp.json()["items"]] == ["Rustic Bench"]

    @pytest.mark.asyncio
    async def test_invalid_sort(self, client, seeded):
        """An unknown sort key is a 422 ErrorResponse."""
        resp = await client.get("/api/v1/furniture", params={"sort": "color"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_favorites_only_requires_identity(self, client, seeded):
        """Anonymous callers can't filter by favorites."""
        resp = await client.get("/api/v1/furniture", params={"favorites_only": "true"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "authentication_required"

    @pytest.mark.asyncio
    async def test_favorites_only(self, client, seeded, session):
        """favorites_only returns the caller's favorites."""
        liked = await _create(client, seeded, name="Liked")
        await _create(client, seeded, name="Other")
        session.add(Favorite(user_id=7, furniture_id=liked["id"]))
        await session.commit()
        resp = await client.get("/api/v1/furniture", params={"favorites_only": "true"}, headers=MEMBER)
        assert [i["name"] for i in resp.json()["items"]] == ["Liked"]

    @pytest.mark.asyncio
    async def test_degraded_on_store_error(self, client, seeded):
        """A store failure answers 200 with no items and degraded=true."""
        with patch(
            "propcat.api.routes.furniture.store.list_furniture",
            new_callable=AsyncMock,
            side_effect=StoreError(),
        ):
            resp = await client.get("/api/v1/furniture")
        assert resp.status_code == 200
        body = resp.json()
        assert body["items"] == []
        assert body["degraded"] is True

    @pytest.mark.asyncio
    async def test_degraded_when_favorites_unavailable(self, client, seeded):
        """A failing favorites lookup degrades listing and search instead of erroring."""
        app.dependency_overrides[get_favorites_store] = _UnavailableFavorites
        try:
            listing = await client.get("/api/v1/furniture", params={"favorites_only": "true"}, headers=MEMBER)
            found = await client.get(
                "/api/v1/furniture/search", params={"q": "chair", "favorites_only": "true"}, headers=MEMBER
            )
        finally:
            app.dependency_overrides.pop(get_favorites_store, None)
        for resp in (listing, found):
            assert resp.status_code == 200
            assert resp.json()["items"] == []
            assert resp.json()["degraded"] is True


class TestGetFurniture:
    """GET /api/v1/furniture/{id} and /furniture/batch"""

    @pytest.mark.asyncio
    async def test_get(self, client, seeded):
        """An existing item is returned."""
        created = await _create(client, seeded)
        resp = await client.get(f"/api/v1/furniture/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Oak Chair"

    @pytest.mark.asyncio
    async def test_not_found_shape(self, client, seeded):
        """Unknown ids return the ErrorResponse shape."""
        resp = await client.get("/api/v1/furniture/999")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "not_found"
        assert body["retryable"] is False
        assert "999" in body["message"]
        assert resp.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_batch(self, client, seeded):
        """Batch fetch keeps the requested order."""
        a = await _create(client, seeded, name="A")
        b = await _create(client, seeded, name="B")
        resp = await client.get("/api/v1/furniture/batch", params={"ids": f"{b['id']},{a['id']}"})
        assert [i["name"] for i in resp.json()["items"]] == ["B", "A"]

    @pytest.mark.asyncio
    async def test_batch_bad_ids(self, client, seeded):
        """Non-integer ids are a validation error."""
        resp = await client.get("/api/v1/furniture/batch", params={"ids": "1,two"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"


class TestSearch:
    """GET /api/v1/furniture/search"""

    @pytest.mark.asyncio
    async def test_too_short(self, client, seeded):
        """A one-character query is a 422."""
        resp = await client.get("/api/v1/furniture/search", params={"q": "a"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_result_suggests_category(self, client, seeded):
        """A fruitless query points at a likely category."""
        resp = await client.get("/api/v1/furniture/search", params={"q": "seats"})
        assert resp.status_code == 200
        assert resp.json()["search_meta"]["suggested_category"] == "seating"
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_synonym_search_logged(self, client, seeded, session):
        """Results include search_meta; the query is written to the search log."""
        await _create(client, seeded, name="Leather Sofa")
        resp = await client.get("/api/v1/furniture/search", params={"q": "Couch"}, headers=MEMBER)
        assert resp.status_code == 200
        body = resp.json()
        assert [i["name"] for i in body["items"]] == ["Leather Sofa"]
        assert "sofa" in body["search_meta"]["synonyms_used"]

        log = (await session.scalars(select(SearchLog))).one()
        assert log.query_normalized == "couch"
        assert log.results_count == 1
        assert log.user_id == 7

    @pytest.mark.asyncio
    async def test_degraded(self, client, seeded):
        """A store failure during search is a degraded 200."""
        with patch(
            "propcat.api.routes.furniture.search.search",
            new_callable=AsyncMock,
            side_effect=StoreError(),
        ):
            resp = await client.get("/api/v1/furniture/search", params={"q": "sofa"})
        assert resp.status_code == 200
        assert resp.json()["degraded"] is True


class TestCheckDuplicates:
    """GET /api/v1/furniture/check-duplicates"""

    @pytest.mark.asyncio
    async def test_candidates(self, client, seeded):
        """Near-identical names are returned with a similarity score."""
        existing = await _create(client, seeded, name="Oak Dining Table", categories=("tables",))
        resp = await client.get(
            "/api/v1/furniture/check-duplicates",
            params={"name": "Oak Dining Tables", "category_id": seeded["tables"]},
        )
        candidates = resp.json()["candidates"]
        assert [c["id"] for c in candidates] == [existing["id"]]
        assert candidates[0]["similarity"] >= 85

    @pytest.mark.asyncio
    async def test_fails_open(self, client, seeded):
        """A store failure yields an empty list, not an error."""
        with patch(
            "propcat.api.routes.furniture.duplicates.find_candidates",
            new_callable=AsyncMock,
            side_effect=StoreError(),
        ):
            resp = await client.get("/api/v1/furniture/check-duplicates", params={"name": "Oak"})
        assert resp.status_code == 200
        assert resp.json() == {"candidates": []}


class TestTaxonomyEndpoints:
    """GET /api/v1/categories, /tags and the admin taxonomy routes"""

    @pytest.mark.asyncio
    async def test_public_lists(self, client, seeded):
        """Categories and grouped tags are public."""
        categories = (await client.get("/api/v1/categories")).json()
        assert [c["slug"] for c in categories] == ["seating", "tables", "storage"]
        tags = (await client.get("/api/v1/tags")).json()
        assert [g["slug"] for g in tags["groups"]] == ["style", "material"]
        assert [t["slug"] for t in tags["ungrouped"]] == ["outdoor"]

    @pytest.mark.asyncio
    async def test_admin_category_lifecycle(self, client, seeded):
        """Create, rename and delete a category."""
        resp = await client.post("/api/v1/admin/categories", json={"name": "Lighting"}, headers=ADMIN)
        assert resp.status_code == 201
        category_id = resp.json()["id"]
        resp = await client.put(
            f"/api/v1/admin/categories/{category_id}", json={"icon": "💡"}, headers=ADMIN
        )
        assert resp.json()["icon"] == "💡"
        resp = await client.delete(f"/api/v1/admin/categories/{category_id}", headers=ADMIN)
        assert resp.status_code == 204

    @pytest.mark.asyncio
    async def test_delete_used_category_conflicts(self, client, seeded):
        """A category in use can't be deleted."""
        await _create(client, seeded)
        resp = await client.delete(f"/api/v1/admin/categories/{seeded['seating']}", headers=ADMIN)
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_admin_tag_routes(self, client, seeded):
        """Tags and tag groups can be managed."""
        resp = await client.post("/api/v1/admin/tag-groups", json={"name": "Era"}, headers=ADMIN)
        assert resp.status_code == 201
        group_id = resp.json()["id"]
        resp = await client.post(
            "/api/v1/admin/tags", json={"name": "Victorian", "group_id": group_id}, headers=ADMIN
        )
        assert resp.status_code == 201
        tag_id = resp.json()["id"]
        resp = await client.put(f"/api/v1/admin/tags/{tag_id}", json={"group_id": None}, headers=ADMIN)
        assert resp.json()["group_id"] is None
        assert (await client.delete(f"/api/v1/admin/tags/{tag_id}", headers=ADMIN)).status_code == 204
        assert (
            await client.delete(f"/api/v1/admin/tag-groups/{group_id}", headers=ADMIN)
        ).status_code == 204

    @pytest.mark.asyncio
    async def test_reorder_tag_groups(self, client, seeded):
        """Tag group order follows the posted id list and shows in /tags."""
        resp = await client.post(
            "/api/v1/admin/tag-groups/reorder",
            json={"ids": [seeded["material"], seeded["style"]]},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert [g["slug"] for g in resp.json()] == ["material", "style"]
        groups = (await client.get("/api/v1/tags")).json()["groups"]
        assert [g["slug"] for g in groups] == ["material", "style"]


class TestAdminAuthorization:
    """Admin routes require a reviewer."""

    @pytest.mark.asyncio
    async def test_anonymous(self, client, seeded):
        """No identity headers is a 401."""
        resp = await client.post("/api/v1/admin/furniture", json=_payload(seeded))
        assert resp.status_code == 401
        assert resp.json()["error"] == "authentication_required"

    @pytest.mark.asyncio
    async def test_member_forbidden(self, client, seeded):
        """A plain member is a 403."""
        resp = await client.post("/api/v1/admin/furniture", json=_payload(seeded), headers=MEMBER)
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_malformed_user_id(self, client, seeded):
        """A non-numeric X-User-Id is rejected."""
        resp = await client.get("/api/v1/submissions", headers={"X-User-Id": "abc"})
        assert resp.status_code == 401


class TestAdminFurniture:
    """Direct admin writes"""

    @pytest.mark.asyncio
    async def test_unknown_category(self, client, seeded):
        """Unknown category ids are listed in a 422."""
        resp = await client.post(
            "/api/v1/admin/furniture",
            json={"name": "Chair", "category_ids": [999]},
            headers=ADMIN,
        )
        assert resp.status_code == 422
        assert "999" in resp.json()["message"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, seeded):
        """PUT replaces the item; DELETE removes it."""
        created = await _create(client, seeded, tags=("wood",))
        resp = await client.put(
            f"/api/v1/admin/furniture/{created['id']}",
            json=_payload(seeded, name="Pine Chair", categories=("tables",)),
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Pine Chair"
        assert resp.json()["tags"] == []
        resp = await client.delete(f"/api/v1/admin/furniture/{created['id']}", headers=ADMIN)
        assert resp.status_code == 204
        assert (await client.get(f"/api/v1/furniture/{created['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_batch_delete(self, client, seeded):
        """Batch delete reports the number removed."""
        a = await _create(client, seeded, name="A")
        b = await _create(client, seeded, name="B")
        resp = await client.post(
            "/api/v1/admin/furniture/batch-delete", json={"ids": [a["id"], b["id"], 999]}, headers=ADMIN
        )
        assert resp.json() == {"deleted": 2}

    @pytest.mark.asyncio
    async def test_search_analytics(self, client, seeded):
        """Logged searches show up in analytics."""
        await client.get("/api/v1/furniture/search", params={"q": "lamp"})
        resp = await client.get("/api/v1/admin/search-analytics", headers=ADMIN)
        assert resp.status_code == 200
        body = resp.json()
        assert body["days"] == 30
        assert [s["query"] for s in body["zero_results"]] == ["lamp"]


class TestSubmissionFlow:
    """POST /api/v1/submissions and the review endpoints"""

    @pytest.mark.asyncio
    async def test_requires_identity(self, client, seeded):
        """Anonymous submissions are refused."""
        resp = await client.post(
            "/api/v1/submissions", json={"type": "new", "payload": _payload(seeded)}
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_create_returns_duplicates(self, client, seeded):
        """Creating a submission reports likely duplicates without blocking."""
        existing = await _create(client, seeded, name="Glass Table", categories=("tables",))
        resp = await client.post(
            "/api/v1/submissions",
            json={"type": "new", "payload": _payload(seeded, name="Glass Tables", categories=("tables",))},
            headers=MEMBER,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["submission"]["status"] == "pending"
        assert [d["id"] for d in body["duplicates"]] == [existing["id"]]

    @pytest.mark.asyncio
    async def test_invalid_body(self, client, seeded):
        """type=new with a furniture_id is a 422."""
        resp = await client.post(
            "/api/v1/submissions",
            json={"type": "new", "furniture_id": 3, "payload": _payload(seeded)},
            headers=MEMBER,
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_scenario_approve_new(self, client, seeded):
        """Scenario B over HTTP: approve creates the submitted item."""
        submission = await _submit(client, seeded, name="Glass Table", categories=("tables",), price=300)
        resp = await client.post(f"/api/v1/submissions/{submission['id']}/approve", headers=ADMIN)
        assert resp.status_code == 200
        body = resp.json()
        assert body["submission"]["status"] == "approved"

        item = (await client.get(f"/api/v1/furniture/{body['furniture_id']}")).json()
        assert item["name"] == "Glass Table"
        assert item["category_slug"] == "tables"
        assert item["price"] == 300

    @pytest.mark.asyncio
    async def test_approve_twice_conflicts(self, client, seeded):
        """The second approval is a 409."""
        submission = await _submit(client, seeded)
        await client.post(f"/api/v1/submissions/{submission['id']}/approve", headers=ADMIN)
        resp = await client.post(f"/api/v1/submissions/{submission['id']}/approve", headers=ADMIN)
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_member_cannot_approve(self, client, seeded):
        """Approval by a plain member is a 403."""
        submission = await _submit(client, seeded)
        resp = await client.post(f"/api/v1/submissions/{submission['id']}/approve", headers=MEMBER)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_scenario_reject_with_notes(self, client, seeded):
        """Scenario C over HTTP: notes are stored, no furniture is created."""
        submission = await _submit(client, seeded)
        resp = await client.post(
            f"/api/v1/submissions/{submission['id']}/reject",
            json={"notes": "duplicate of #42"},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["submission"]["admin_notes"] == "duplicate of #42"
        listing = (await client.get("/api/v1/furniture")).json()
        assert listing["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_scenario_cancel(self, client, seeded):
        """Scenario D over HTTP: others get 403, the submitter gets 204."""
        submission = await _submit(client, seeded)
        resp = await client.post(f"/api/v1/submissions/{submission['id']}/cancel", headers=OTHER_MEMBER)
        assert resp.status_code == 403
        resp = await client.post(f"/api/v1/submissions/{submission['id']}/cancel", headers=MEMBER)
        assert resp.status_code == 204
        resp = await client.get(f"/api/v1/submissions/{submission['id']}", headers=MEMBER)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_listing_and_pending_count(self, client, seeded):
        """Members see their own submissions; reviewers see the queue size."""
        await _submit(client, seeded, name="Mine")
        await _submit(client, seeded, headers=OTHER_MEMBER, name="Theirs")
        own = (await client.get("/api/v1/submissions", headers=MEMBER)).json()
        assert [s["payload"]["name"] for s in own["items"]] == ["Mine"]
        new_only = (await client.get("/api/v1/submissions", params={"type": "new"}, headers=ADMIN)).json()
        assert new_only["pagination"]["total"] == 2
        count = (await client.get("/api/v1/submissions/pending-count", headers=ADMIN)).json()
        assert count == {"pending": 2}

    @pytest.mark.asyncio
    async def test_bulk(self, client, seeded):
        """Bulk approve processes every pending id."""
        a = await _submit(client, seeded, name="A")
        b = await _submit(client, seeded, name="B")
        resp = await client.post(
            "/api/v1/submissions/bulk",
            json={"ids": [a["id"], b["id"]], "action": "approve"},
            headers=ADMIN,
        )
        assert resp.json() == {"processed": [a["id"], b["id"]], "failed": []}
        assert (await client.get("/api/v1/furniture")).json()["pagination"]["total"] == 2
