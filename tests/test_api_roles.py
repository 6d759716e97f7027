"""
Script Gate - Roles and Admin API Tests
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_admin_routes_forbidden_for_user(client: AsyncClient, user_headers):
    for path in ("/api/roles", "/api/admin/modules", "/api/admin/users", "/api/admin/audit"):
        response = await client.get(path, headers=user_headers)
        assert response.status_code == 403, path


@pytest.mark.asyncio
async def test_list_roles(client: AsyncClient, admin_headers):
    response = await client.get("/api/roles", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert [r["name"] for r in data] == ["admin", "manager", "user"]
    assert data[0]["is_builtin"] is True
    user_role = data[2]
    assert {p["module_id"] for p in user_role["permissions"]} == {"system_info", "disk_usage"}


@pytest.mark.asyncio
async def test_role_lifecycle(client: AsyncClient, admin_headers):
    created = await client.post(
        "/api/roles",
        json={"name": "auditor", "description": "Auditors", "level": 20, "modules": ["user_list"]},
        headers=admin_headers,
    )
    assert created.status_code == 201
    assert created.json()["is_builtin"] is False

    updated = await client.put(
        "/api/roles/auditor", json={"level": 8}, headers=admin_headers
    )
    assert updated.status_code == 200
    assert updated.json()["level"] == 8

    granted = await client.post("/api/roles/auditor/modules/disk_usage", headers=admin_headers)
    assert {p["module_id"] for p in granted.json()["permissions"]} == {"user_list", "disk_usage"}

    revoked = await client.delete("/api/roles/auditor/modules/user_list", headers=admin_headers)
    assert [p["module_id"] for p in revoked.json()["permissions"]] == ["disk_usage"]

    deleted = await client.delete("/api/roles/auditor", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get("/api/roles/auditor", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_role_validation_errors(client: AsyncClient, admin_headers):
    too_privileged = await client.post(
        "/api/roles",
        json={"name": "root", "description": "Nope", "level": 0},
        headers=admin_headers,
    )
    assert too_privileged.status_code == 400

    out_of_range = await client.post(
        "/api/roles",
        json={"name": "root", "description": "Nope", "level": 500},
        headers=admin_headers,
    )
    assert out_of_range.status_code == 422

    duplicate = await client.post(
        "/api/roles",
        json={"name": "user", "description": "Again", "level": 20},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_builtin_role_protections(client: AsyncClient, admin_headers):
    assert (await client.delete("/api/roles/admin", headers=admin_headers)).status_code == 400
    response = await client.put("/api/roles/user", json={"level": 1}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_double_grant_via_api(client: AsyncClient, admin_headers):
    for _ in range(2):
        response = await client.post("/api/roles/user/modules/user_list", headers=admin_headers)
        assert response.status_code == 200
    modules = [p["module_id"] for p in response.json()["permissions"]]
    assert modules.count("user_list") == 1


@pytest.mark.asyncio
async def test_admin_module_crud(client: AsyncClient, admin_headers):
    listed = await client.get("/api/admin/modules", headers=admin_headers)
    assert {m["id"] for m in listed.json()} == {"system_info", "user_list", "disk_usage"}
    assert listed.json()[0]["script_name"]

    bad = await client.post(
        "/api/admin/modules",
        json={
            "module_id": "Bad-Id",
            "name": "Bad",
            "description": "Invalid identifier",
            "script_name": "args.sh",
        },
        headers=admin_headers,
    )
    assert bad.status_code == 422

    conflict = await client.post(
        "/api/admin/modules",
        json={
            "module_id": "dup_script",
            "name": "Dup",
            "description": "Reuses a script",
            "script_name": "system-info.sh",
        },
        headers=admin_headers,
    )
    assert conflict.status_code == 409

    disabled = await client.put(
        "/api/admin/modules/user_list", json={"is_active": False}, headers=admin_headers
    )
    assert disabled.status_code == 200
    assert disabled.json()["is_active"] is False

    visible = await client.get("/api/modules", headers=admin_headers)
    assert "user_list" not in [m["id"] for m in visible.json()]

    gone = await client.delete("/api/admin/modules/user_list", headers=admin_headers)
    assert gone.status_code == 200
    assert (await client.delete("/api/admin/modules/user_list", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_admin_users(client: AsyncClient, admin_headers):
    created = await client.post(
        "/api/admin/users",
        json={"username": "alice", "password": "long-enough-pw", "full_name": "Alice"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    assert created.json()["role"] == "user"
    user_id = created.json()["id"]

    promoted = await client.put(
        f"/api/admin/users/{user_id}", json={"role_name": "manager"}, headers=admin_headers
    )
    assert promoted.json()["role"] == "manager"

    missing_role = await client.put(
        f"/api/admin/users/{user_id}", json={"role_name": "ghost"}, headers=admin_headers
    )
    assert missing_role.status_code == 404

    listed = await client.get("/api/admin/users", headers=admin_headers)
    assert "alice" in [u["username"] for u in listed.json()["users"]]


@pytest.mark.asyncio
async def test_audit_trail_records_mutations(client: AsyncClient, admin_headers):
    await client.post("/api/roles/user/modules/user_list", headers=admin_headers)
    response = await client.get(
        "/api/admin/audit", params={"resource_type": "role"}, headers=admin_headers
    )
    assert response.status_code == 200
    logs = response.json()["logs"]
    assert logs[0]["action"] == "role.permission_granted"
    assert logs[0]["actor_username"] == "admin-account"
