from bms_backend.extensions import db
from bms_backend.models import Organization, Tenant, User

from .conftest import auth_headers


def test_super_admin_creates_organization_with_generated_code(client, super_admin):
    resp = client.post("/api/organizations", json={"name": "Sar Bet Plaza"}, headers=auth_headers(super_admin))
    assert resp.status_code == 201
    org = resp.get_json()["organization"]
    assert org["code"] == "SAR-BET-PLAZA"
    assert org["status"] == "active"

    resp = client.post("/api/organizations", json={"name": "Sar Bet Plaza"}, headers=auth_headers(super_admin))
    assert resp.get_json()["organization"]["code"] == "SAR-BET-PLAZA-2"


def test_organization_conflicts(client, super_admin, org):
    headers = auth_headers(super_admin)
    resp = client.post("/api/organizations", json={"name": "Dup", "code": org.code}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Organization code already exists"

    client.post("/api/organizations", json={"name": "One", "subdomain": "one"}, headers=headers)
    resp = client.post("/api/organizations", json={"name": "Two", "subdomain": "one"}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Subdomain already exists"

    resp = client.post("/api/organizations", json={"name": "  "}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Organization name is required"


def test_org_admin_sees_only_own_organization(client, admin, org, other_org):
    headers = auth_headers(admin)
    assert client.get(f"/api/organizations/{org.id}", headers=headers).status_code == 200
    assert client.get(f"/api/organizations/{other_org.id}", headers=headers).status_code == 404
    assert client.get("/api/organizations", headers=headers).status_code == 403


def test_deactivate_organization(client, super_admin, org):
    resp = client.post(f"/api/organizations/{org.id}/deactivate", headers=auth_headers(super_admin))
    assert resp.status_code == 200
    assert db.session.get(Organization, org.id).status == "inactive"


def test_org_admin_cannot_assign_restricted_roles(client, admin):
    resp = client.post(
        "/api/users",
        json={"name": "Second admin", "phone": "+251933000001", "roles": ["ORG_ADMIN"]},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 403
    assert resp.get_json()["message"].startswith("You cannot assign ORG_ADMIN, SUPER_ADMIN, or TENANT roles.")


def test_create_user_and_conflicts(client, admin):
    headers = auth_headers(admin)
    payload = {"name": "Meron", "phone": "+251933000002", "email": "Meron@Bole.test", "roles": ["ACCOUNTANT"]}
    resp = client.post("/api/users", json=payload, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()["user"]["email"] == "meron@bole.test"

    resp = client.post("/api/users", json={**payload, "email": None}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Phone number already exists in this organization"

    resp = client.post("/api/users", json={**payload, "phone": "+251933000003"}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Email already exists"

    resp = client.post("/api/users", json={**payload, "roles": ["WIZARD"]}, headers=headers)
    assert resp.status_code == 400


def test_list_users_filters_by_role(client, admin, accountant, guard):
    resp = client.get("/api/users?role=SECURITY", headers=auth_headers(admin))
    body = resp.get_json()
    assert body["total"] == 1
    assert body["users"][0]["id"] == guard.id


def test_user_edits(client, admin, accountant, make_user, org):
    other_admin = make_user(["ORG_ADMIN"], org)

    resp = client.put(f"/api/users/{accountant.id}", json={"name": "Renamed"}, headers=auth_headers(accountant))
    assert resp.status_code == 200

    resp = client.put(f"/api/users/{other_admin.id}", json={"name": "X"}, headers=auth_headers(admin))
    assert resp.status_code == 403
    assert "You can only edit your own account." in resp.get_json()["message"]

    resp = client.put(
        f"/api/users/{accountant.id}", json={"organization_id": 999}, headers=auth_headers(admin)
    )
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Cannot change organizationId: requires SUPER_ADMIN permission"


def test_resident_cannot_relink_own_account(client, tenant_user, tenant, org):
    neighbour = Tenant(organization_id=org.id, first_name="Sara", last_name="Tesfaye", primary_phone="+251922000099")
    db.session.add(neighbour)
    db.session.commit()
    headers = auth_headers(tenant_user)

    resp = client.put(f"/api/users/{tenant_user.id}", json={"tenant_id": neighbour.id}, headers=headers)
    assert resp.status_code == 403
    resp = client.put(f"/api/users/{tenant_user.id}", json={"status": "active", "name": "Abebe K."}, headers=headers)
    assert resp.status_code == 200
    resp = client.put(f"/api/users/{tenant_user.id}", json={"status": "suspended"}, headers=headers)
    assert resp.status_code == 403

    user = db.session.get(User, tenant_user.id)
    assert user.tenant_id == tenant.id
    assert user.name == "Abebe K."
    assert user.status == "active"


def test_linked_tenant_must_belong_to_organization(client, admin, accountant, other_org):
    foreign = Tenant(organization_id=other_org.id, first_name="Hana", last_name="Girma", primary_phone="+251922000098")
    db.session.add(foreign)
    db.session.commit()

    resp = client.put(f"/api/users/{accountant.id}", json={"tenant_id": foreign.id}, headers=auth_headers(admin))
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Tenant does not belong to the same organization"

    resp = client.post(
        "/api/users",
        json={"name": "Linked", "phone": "+251911999999", "roles": ["ACCOUNTANT"], "tenant_id": foreign.id},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 403
    assert User.query.filter_by(phone="+251911999999").first() is None


def test_delete_rules(client, admin, accountant, super_admin):
    headers = auth_headers(admin)
    resp = client.delete(f"/api/users/{admin.id}", headers=auth_headers(super_admin))
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Cannot delete last ORG_ADMIN in organization"

    resp = client.delete(f"/api/users/{accountant.id}", headers=headers)
    assert resp.status_code == 200
    assert db.session.get(User, accountant.id).status == "inactive"


def test_bulk_delete(client, admin, accountant, guard, make_user, org):
    headers = auth_headers(admin)
    other_admin = make_user(["ORG_ADMIN"], org)
    resp = client.post(
        "/api/users/bulk-delete",
        json={"user_ids": [accountant.id, guard.id, other_admin.id, 9999]},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["deleted"] == 2
    assert body["failed"] == 2
    failures = {r["user_id"]: r["error"] for r in body["results"] if not r["success"]}
    assert failures[other_admin.id] == "You cannot delete users with ORG_ADMIN or SUPER_ADMIN roles."
    assert failures[9999] == "User not found"

    resp = client.post("/api/users/bulk-delete", json={"user_ids": list(range(1, 52))}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot delete more than 50 users at once"
