from bms_backend.security.permissions import (
    ORG_ADMIN,
    PERMISSIONS,
    ROLES,
    SECURITY,
    TENANT,
    has_any_role_permission,
    has_permission,
)

from .conftest import auth_headers


def test_every_role_covers_every_module():
    for role in ROLES:
        assert set(PERMISSIONS[role]) == set(PERMISSIONS[ORG_ADMIN])


def test_matrix_lookups():
    assert has_permission(ORG_ADMIN, "invoices", "send")
    assert not has_permission(ORG_ADMIN, "payments", "create")
    assert has_permission(ORG_ADMIN, "payments", "record")
    assert has_permission(TENANT, "payments", "create_own")
    assert has_permission(SECURITY, "security", "log_exit")
    assert not has_permission("JANITOR", "invoices", "read")
    assert not has_permission(TENANT, "no_such_module", "read")


def test_any_role_permission():
    assert has_any_role_permission([TENANT, SECURITY], "security", "log_entry")
    assert not has_any_role_permission([], "security", "read")
    assert not has_any_role_permission(None, "security", "read")


def test_missing_token_is_401(client):
    resp = client.get("/api/buildings")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"


def test_inactive_user_is_401(client, make_user, org):
    user = make_user([ORG_ADMIN], org, status="suspended")
    resp = client.get("/api/buildings", headers=auth_headers(user))
    assert resp.status_code == 401


def test_forbidden_action_is_403(client, technician):
    resp = client.post("/api/buildings", json={"name": "Annex"}, headers=auth_headers(technician))
    assert resp.status_code == 403
    body = resp.get_json()
    assert body["error"] == "forbidden"
    assert body["message"].startswith("Access denied")


def test_super_admin_must_name_an_organization(client, super_admin, org):
    resp = client.get("/api/buildings", headers=auth_headers(super_admin))
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Organization context is required"

    resp = client.get(f"/api/buildings?organization_id={org.id}", headers=auth_headers(super_admin))
    assert resp.status_code == 200


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["service"] == "bms-backend"
