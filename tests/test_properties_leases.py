from bms_backend.extensions import db
from bms_backend.models import Lease, Unit

from .conftest import auth_headers


def test_building_and_unit_crud(client, admin):
    headers = auth_headers(admin)
    resp = client.post("/api/buildings", json={"name": "Tower B", "building_type": "commercial"}, headers=headers)
    assert resp.status_code == 201
    building_id = resp.get_json()["building"]["id"]

    resp = client.post(
        "/api/units",
        json={"building_id": building_id, "unit_number": "G-1", "unit_type": "shop", "rent_amount": 30000},
        headers=headers,
    )
    assert resp.status_code == 201
    unit = resp.get_json()["unit"]
    assert unit["status"] == "available"
    assert unit["rent_amount"] == 30000.0

    resp = client.post("/api/units", json={"building_id": building_id, "unit_number": "G-1"}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == 'Unit number "G-1" already exists in this building'

    resp = client.delete(f"/api/buildings/{building_id}", headers=headers)
    assert resp.status_code == 409

    assert client.delete(f"/api/units/{unit['id']}", headers=headers).status_code == 200
    assert client.delete(f"/api/buildings/{building_id}", headers=headers).status_code == 200


def test_building_validation(client, admin):
    headers = auth_headers(admin)
    assert client.post("/api/buildings", json={}, headers=headers).status_code == 400
    resp = client.post("/api/buildings", json={"name": "X", "building_type": "castle"}, headers=headers)
    assert resp.status_code == 400


def test_other_organization_building_is_not_found(client, admin, other_org):
    from bms_backend.models import Building

    foreign = Building(organization_id=other_org.id, name="Elsewhere")
    db.session.add(foreign)
    db.session.commit()
    headers = auth_headers(admin)
    assert client.get(f"/api/buildings/{foreign.id}", headers=headers).status_code == 404

    resp = client.post("/api/units", json={"building_id": foreign.id, "unit_number": "1"}, headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Building does not belong to the same organization"


def test_unit_list_filters(client, admin, unit, building):
    resp = client.get(f"/api/units?building_id={building.id}&status=available", headers=auth_headers(admin))
    body = resp.get_json()
    assert body["total"] == 1
    assert body["units"][0]["building_name"] == "Tower A"


def test_tenant_crud_and_phone_conflict(client, admin, tenant):
    headers = auth_headers(admin)
    payload = {"first_name": "Sara", "last_name": "Tesfaye", "primary_phone": tenant.primary_phone}
    resp = client.post("/api/tenants", json=payload, headers=headers)
    assert resp.status_code == 409

    resp = client.post("/api/tenants", json={**payload, "primary_phone": "+251922000002"}, headers=headers)
    assert resp.status_code == 201
    new_id = resp.get_json()["tenant"]["id"]

    resp = client.get("/api/tenants?search=sara", headers=headers)
    assert resp.get_json()["total"] == 1

    resp = client.post("/api/tenants", json={"first_name": "Only"}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "first_name, last_name, and primary_phone are required"

    assert client.delete(f"/api/tenants/{new_id}", headers=headers).status_code == 200


def test_tenant_with_lease_cannot_be_deleted(client, admin, tenant, lease):
    resp = client.delete(f"/api/tenants/{tenant.id}", headers=auth_headers(admin))
    assert resp.status_code == 409


def test_resident_sees_only_own_tenant_record(client, tenant_user, tenant, org):
    from bms_backend.models import Tenant

    neighbour = Tenant(organization_id=org.id, first_name="Hana", last_name="G", primary_phone="+251922000099")
    db.session.add(neighbour)
    db.session.commit()

    headers = auth_headers(tenant_user)
    assert client.get(f"/api/tenants/{tenant.id}", headers=headers).status_code == 200
    assert client.get(f"/api/tenants/{neighbour.id}", headers=headers).status_code == 404

    resp = client.put(
        f"/api/tenants/{tenant.id}", json={"email": "new@example.com", "status": "suspended"}, headers=headers
    )
    assert resp.status_code == 200
    body = resp.get_json()["tenant"]
    assert body["email"] == "new@example.com"
    assert body["status"] == "active"


def test_create_lease_occupies_unit(client, admin, tenant, unit):
    resp = client.post(
        "/api/leases",
        json={
            "tenant_id": tenant.id,
            "unit_id": unit.id,
            "start_date": "2024-03-01",
            "end_date": "2025-02-28",
            "rent_amount": 15000,
            "due_day": 10,
        },
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201
    body = resp.get_json()["lease"]
    assert body["status"] == "active"
    assert body["unit_number"] == "101"
    assert db.session.get(Unit, unit.id).status == "occupied"


def test_lease_validation(client, admin, tenant, unit, lease):
    headers = auth_headers(admin)
    base = {"tenant_id": tenant.id, "unit_id": unit.id, "start_date": "2024-03-01", "rent_amount": 100}

    resp = client.post("/api/leases", json=base, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Unit already has an active lease"

    resp = client.post("/api/leases", json={**base, "end_date": "2024-02-01", "status": "pending"}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "End date must be after start date"

    resp = client.post("/api/leases", json={**base, "due_day": 32, "status": "pending"}, headers=headers)
    assert resp.status_code == 400

    resp = client.post("/api/leases", json={**base, "rent_amount": 0, "status": "pending"}, headers=headers)
    assert resp.status_code == 400


def test_unit_with_active_lease_cannot_be_deleted(client, admin, unit, lease):
    resp = client.delete(f"/api/units/{unit.id}", headers=auth_headers(admin))
    assert resp.status_code == 409


def test_terminate_lease_frees_unit(client, admin, lease, unit):
    headers = auth_headers(admin)
    resp = client.post(
        f"/api/leases/{lease.id}/terminate",
        json={"termination_date": "2024-06-30", "reason": "Moved out"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()["lease"]
    assert body["status"] == "terminated"
    assert body["termination_date"] == "2024-06-30"
    assert db.session.get(Unit, unit.id).status == "available"

    resp = client.post(f"/api/leases/{lease.id}/terminate", json={}, headers=headers)
    assert resp.status_code == 400


def test_resident_lease_scope(client, tenant_user, lease, org, unit, building):
    from bms_backend.models import Tenant

    other_tenant = Tenant(organization_id=org.id, first_name="Hana", last_name="G", primary_phone="+251922000099")
    other_unit = Unit(organization_id=org.id, building_id=building.id, unit_number="102")
    db.session.add_all([other_tenant, other_unit])
    db.session.commit()
    other_lease = Lease(
        organization_id=org.id, tenant_id=other_tenant.id, unit_id=other_unit.id,
        start_date=lease.start_date, rent_amount=9000, status="active",
    )
    db.session.add(other_lease)
    db.session.commit()

    headers = auth_headers(tenant_user)
    resp = client.get("/api/leases", headers=headers)
    body = resp.get_json()
    assert body["total"] == 1
    assert body["leases"][0]["id"] == lease.id

    assert client.get(f"/api/leases/{lease.id}", headers=headers).status_code == 200
    assert client.get(f"/api/leases/{other_lease.id}", headers=headers).status_code == 404
