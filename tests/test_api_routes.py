"""
tests/test_api_routes.py — FastAPI Route Integration Tests
===========================================================

Drives the public and admin routers through the TestClient with the
services swapped for in-memory ones.

These tests verify:
- Auth guards on admin endpoints
- Domain errors mapped onto HTTP status codes
- Response structure of the public endpoints
"""

from __future__ import annotations

import pytest

from linkkeeper.api.deps import create_access_token
from linkkeeper.database.models import Tier


@pytest.fixture
def non_admin_token():
    return create_access_token("67890", "RegularUser", is_admin=False)


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAdminAuthGuards:
    """Admin endpoints must return 401/403 for missing/invalid/non-admin tokens."""

    ADMIN_POST_ENDPOINTS = [
        "/api/admin/members/101/promote",
        "/api/admin/participation/weekly/reset",
        "/api/admin/distribution/silver/refresh",
        "/api/admin/distribution/silver/pick-winner",
        "/api/admin/inventory",
        "/api/admin/inventory/count",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_no_token_returns_401(self, client, endpoint):
        resp = client.post(endpoint)
        assert resp.status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_invalid_token_returns_401(self, client, endpoint):
        resp = client.post(endpoint, headers=_auth("not.a.jwt"))
        assert resp.status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_POST_ENDPOINTS)
    def test_non_admin_returns_403(self, client, non_admin_token, endpoint):
        resp = client.post(endpoint, headers=_auth(non_admin_token))
        assert resp.status_code == 403

    def test_delete_requires_admin(self, client):
        assert client.delete("/api/admin/members/101").status_code == 401


# ===========================================================================
# Public endpoints
# ===========================================================================
class TestPublicEndpoints:
    def test_members_empty(self, client):
        resp = client.get("/api/members")
        assert resp.status_code == 200
        assert resp.json() == {"total": 0, "members": []}

    def test_member_status(self, client, make_member):
        make_member("101", days=45)
        resp = client.get("/api/members/101")
        assert resp.status_code == 200
        data = resp.json()
        assert data["rank"] == "Scholar"
        assert data["silver_eligible"] is True
        assert data["gold_eligible"] is False
        assert data["history"] == []

    def test_unknown_member_is_404(self, client):
        resp = client.get("/api/members/ghost")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    def test_unknown_member_history_is_404(self, client):
        assert client.get("/api/members/ghost/history").status_code == 404

    def test_distribution_status(self, client):
        resp = client.get("/api/distribution/status")
        assert resp.status_code == 200
        assert set(resp.json()) == {"silver", "gold"}

    def test_single_tier_status(self, client):
        resp = client.get("/api/distribution/status/gold")
        assert resp.status_code == 200
        assert resp.json()["tier"] == "gold"

    def test_bad_tier_is_422(self, client):
        assert client.get("/api/distribution/status/bronze").status_code == 422


# ===========================================================================
# Admin flows
# ===========================================================================
class TestAdminFlows:
    def test_create_member(self, client, admin_token, members):
        resp = client.post(
            "/api/admin/members",
            json={"discord_id": "101", "username": "Ada", "join_date": "2026-01-01T00:00:00Z"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["discord_id"] == "101"
        assert members.get_member("101").added_by == "99999"

    def test_duplicate_member_is_409(self, client, admin_token, make_member):
        make_member("101")
        resp = client.post(
            "/api/admin/members",
            json={"discord_id": "101", "username": "Ada", "join_date": "2026-01-01T00:00:00Z"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 409

    def test_participation_endpoints(self, client, admin_token, make_member):
        make_member("101", weekly=False)
        resp = client.post(
            "/api/admin/members/101/weekly", json={"participated": True}, headers=_auth(admin_token),
        )
        assert resp.json()["weekly_boss_participation"] is True

        resp = client.post(
            "/api/admin/members/101/omni", json={"participated": False}, headers=_auth(admin_token),
        )
        assert resp.json()["omni_absence_count"] == 1

        resp = client.post("/api/admin/participation/weekly/reset", headers=_auth(admin_token))
        assert resp.json() == {"cleared": 1}

    def test_promote_twice_is_412(self, client, admin_token, make_member):
        make_member("101")
        assert client.post("/api/admin/members/101/promote", headers=_auth(admin_token)).status_code == 200
        assert client.post("/api/admin/members/101/promote", headers=_auth(admin_token)).status_code == 412

    def test_refresh_and_pick_winner(self, client, admin_token, make_member):
        make_member("101")
        refreshed = client.post("/api/admin/distribution/silver/refresh", headers=_auth(admin_token))
        assert refreshed.json()["eligible_count"] == 1

        resp = client.post(
            "/api/admin/distribution/silver/pick-winner",
            json={"notes": "Omni #3"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["winner"]["discord_id"] == "101"
        assert data["history"]["notes"] == "Omni #3"
        assert data["cycle_reset"] is True

        history = client.get("/api/distribution/history?tier=silver").json()
        assert [h["discord_id"] for h in history] == ["101"]

    def test_pick_winner_with_nobody_is_412(self, client, admin_token):
        resp = client.post("/api/admin/distribution/gold/pick-winner", headers=_auth(admin_token))
        assert resp.status_code == 412
        body = resp.json()
        assert body["error"] == "PreconditionFailed"
        assert body["tier"] == "gold"

    def test_force_complete(self, client, admin_token, make_member, seed_list, load_list):
        make_member("101")
        make_member("102")
        seed_list(Tier.SILVER, eligible=["101"], inactive=["102"])
        resp = client.post(
            "/api/admin/distribution/silver/force-complete",
            json={"reason": "stalled"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["compensation_count"] == 2
        assert load_list(Tier.SILVER).compensation_queue == ["102", "101"]

    def test_force_complete_requires_reason(self, client, admin_token):
        resp = client.post(
            "/api/admin/distribution/silver/force-complete", json={}, headers=_auth(admin_token),
        )
        assert resp.status_code == 422

    def test_delete_member(self, client, admin_token, make_member):
        make_member("101")
        assert client.delete("/api/admin/members/101", headers=_auth(admin_token)).status_code == 204
        assert client.get("/api/members/101").status_code == 404


# ===========================================================================
# Inventory
# ===========================================================================
class TestInventoryRoutes:
    def test_create_item(self, client, admin_token, inventory):
        resp = client.post(
            "/api/admin/inventory",
            json={"link_type": "Melee Damage", "description": "+melee"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["category"] == "Mastery Links"
        assert inventory.get_item("Melee Damage").updated_by == "99999"

    def test_duplicate_item_is_409(self, client, admin_token, inventory):
        inventory.add_item("Melee Damage")
        resp = client.post(
            "/api/admin/inventory", json={"link_type": "Melee Damage"}, headers=_auth(admin_token)
        )
        assert resp.status_code == 409

    def test_receive_then_read(self, client, admin_token):
        resp = client.post(
            "/api/admin/inventory/add",
            json={"link_type": "Ranged/Melee Crit", "quality": "gold", "quantity": 2},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["new_count"] == 2

        item = client.get("/api/inventory/item", params={"link_type": "Ranged/Melee Crit"})
        assert item.status_code == 200
        assert item.json()["gold_count"] == 2

        journal = client.get("/api/inventory/transactions", params={"link_type": "Ranged/Melee Crit"})
        assert [t["change_type"] for t in journal.json()] == ["add"]

    def test_negative_count_is_422(self, client, admin_token, inventory):
        inventory.add_item("Melee Damage")
        resp = client.post(
            "/api/admin/inventory/count",
            json={"link_type": "Melee Damage", "quality": "bronze", "new_count": -1},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 422

    def test_unknown_quality_is_422(self, client, admin_token):
        resp = client.post(
            "/api/admin/inventory/add",
            json={"link_type": "Melee Damage", "quality": "platinum"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 422

    def test_count_on_unknown_type_is_404(self, client, admin_token):
        resp = client.post(
            "/api/admin/inventory/count",
            json={"link_type": "Nope", "quality": "bronze", "new_count": 1},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 404

    def test_adjust_and_bulk(self, client, admin_token, inventory):
        inventory.add_item("Melee Damage")
        inventory.add_item("Healing")
        adjusted = client.post(
            "/api/admin/inventory/adjust",
            json={"link_type": "Melee Damage", "quality": "silver", "delta": -3},
            headers=_auth(admin_token),
        )
        assert adjusted.json()["new_count"] == 0

        bulk = client.post(
            "/api/admin/inventory/bulk",
            json={
                "updates": [
                    {"link_type": "Melee Damage", "quality": "gold", "new_count": 1},
                    {"link_type": "Healing", "quality": "bronze", "new_count": 4},
                ],
                "reason": "stock take",
            },
            headers=_auth(admin_token),
        )
        assert bulk.status_code == 200
        assert [t["new_count"] for t in bulk.json()] == [1, 4]

    def test_empty_bulk_is_422(self, client, admin_token):
        resp = client.post(
            "/api/admin/inventory/bulk", json={"updates": []}, headers=_auth(admin_token)
        )
        assert resp.status_code == 422

    def test_public_listing_and_summary(self, client, inventory):
        inventory.receive_stock("Melee Damage", "gold", 2)
        inventory.receive_stock("Healing", "bronze", 1, category="Support Links")

        listing = client.get("/api/inventory", params={"category": "Support Links"}).json()
        assert listing["total"] == 1
        assert listing["items"][0]["link_type"] == "Healing"

        summary = client.get("/api/inventory/summary").json()
        assert summary["total_links"] == 3
        assert {c["category"] for c in summary["categories"]} == {"Mastery Links", "Support Links"}

        low = client.get("/api/inventory/low-stock").json()
        assert {i["link_type"] for i in low} == {"Melee Damage", "Healing"}

    def test_unknown_item_is_404(self, client):
        assert client.get("/api/inventory/item", params={"link_type": "Nope"}).status_code == 404
