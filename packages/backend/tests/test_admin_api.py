"""Admin API tests — pool key CRUD behind the admin check."""

import pytest

from conftest import OTHER_USER_ID, act_as


# ═══════════════════════════════════════════════════════════
# Authorization
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_non_admin_forbidden(client):
    r = await client.get("/api/v1/admin/pool-keys")
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_guest_forbidden(client, admin_settings):
    act_as(OTHER_USER_ID, identity_type="guest")
    r = await client.post("/api/v1/admin/pool-keys", json={"api_key": "AIzaX"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_requires_auth(unauthenticated_client):
    r = await unauthenticated_client.get("/api/v1/admin/pool-keys")
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_and_list_keys_masked(client, admin_settings):
    r = await client.post(
        "/api/v1/admin/pool-keys",
        json={"api_key": "AIzaSyExampleKey9876", "label": "team"},
    )
    assert r.status_code == 201
    key = r.json()
    assert key["label"] == "team"
    assert key["is_active"] is True
    assert key["usage_count"] == 0
    assert key["masked_key"] == "AIza...9876"
    assert "api_key" not in key

    r = await client.get("/api/v1/admin/pool-keys")
    assert r.status_code == 200
    keys = r.json()
    assert len(keys) == 1
    assert "AIzaSyExampleKey9876" not in r.text


@pytest.mark.asyncio
async def test_add_duplicate_conflicts(client, admin_settings):
    body = {"api_key": "AIzaDuplicate"}
    assert (await client.post("/api/v1/admin/pool-keys", json=body)).status_code == 201

    r = await client.post("/api/v1/admin/pool-keys", json=body)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_add_blank_key_rejected(client, admin_settings):
    r = await client.post("/api/v1/admin/pool-keys", json={"api_key": "   "})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_toggle_reset_delete(client, admin_settings):
    r = await client.post("/api/v1/admin/pool-keys", json={"api_key": "AIzaLifecycle"})
    key_id = r.json()["id"]

    r = await client.post(f"/api/v1/admin/pool-keys/{key_id}/toggle")
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = await client.post(f"/api/v1/admin/pool-keys/{key_id}/reset-usage")
    assert r.status_code == 200
    assert r.json()["usage_count"] == 0

    r = await client.delete(f"/api/v1/admin/pool-keys/{key_id}")
    assert r.status_code == 200
    assert r.json() == {"deleted": True, "id": key_id}

    r = await client.get("/api/v1/admin/pool-keys")
    assert r.json() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("method,path", [
    ("POST", "/api/v1/admin/pool-keys/404/toggle"),
    ("POST", "/api/v1/admin/pool-keys/404/reset-usage"),
    ("DELETE", "/api/v1/admin/pool-keys/404"),
])
async def test_unknown_key_not_found(client, admin_settings, method, path):
    r = await client.request(method, path)
    assert r.status_code == 404
