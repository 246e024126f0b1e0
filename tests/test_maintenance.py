from bms_backend.extensions import db
from bms_backend.models import Tenant
from bms_backend.services import maintenance as svc

from .conftest import auth_headers


def _complaint(client, user, **overrides):
    payload = {"title": "Leaking tap", "description": "Kitchen tap drips all night", "category": "maintenance"}
    payload.update(overrides)
    return client.post("/api/complaints", json=payload, headers=auth_headers(user))


def test_work_order_mappings():
    assert svc.map_work_order_category("cleanliness") == "cleaning"
    assert svc.map_work_order_category("security") == "security"
    assert svc.map_work_order_category("noise") == "other"
    assert svc.map_work_order_category("maintenance", "electrical") == "electrical"
    assert svc.map_work_order_category("maintenance", "appliance") == "other"
    assert svc.map_work_order_priority("high") == "high"
    assert svc.map_work_order_priority("low", "emergency") == "urgent"
    assert svc.map_work_order_priority("low", "medium") == "medium"


def test_resident_complaints_are_pinned_to_own_tenant(client, tenant_user, guard, tenant, org):
    neighbour = Tenant(organization_id=org.id, first_name="Hana", last_name="G", primary_phone="+251922000099")
    db.session.add(neighbour)
    db.session.commit()

    resp = _complaint(client, tenant_user, tenant_id=neighbour.id)
    assert resp.status_code == 201
    mine = resp.get_json()["complaint"]
    assert mine["tenant_id"] == tenant.id
    assert mine["status"] == "open"

    other = _complaint(client, guard, tenant_id=neighbour.id).get_json()["complaint"]

    headers = auth_headers(tenant_user)
    listed = client.get("/api/complaints", headers=headers).get_json()
    assert [c["id"] for c in listed["complaints"]] == [mine["id"]]
    assert client.get(f"/api/complaints/{other['id']}", headers=headers).status_code == 404

    resp = client.put(
        f"/api/complaints/{mine['id']}", json={"description": "Now flooding", "status": "closed"}, headers=headers
    )
    assert resp.status_code == 200
    body = resp.get_json()["complaint"]
    assert body["description"] == "Now flooding"
    assert body["status"] == "open"


def test_complaint_validation(client, guard):
    resp = _complaint(client, guard, category=None)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "title, description, and category are required"
    assert _complaint(client, guard, priority="critical").status_code == 400


def test_assign_and_resolve_complaint(client, guard, manager, technician):
    headers = auth_headers(manager)
    complaint = _complaint(client, guard).get_json()["complaint"]

    resp = client.put(f"/api/complaints/{complaint['id']}", json={"assigned_to": technician.id}, headers=headers)
    body = resp.get_json()["complaint"]
    assert body["status"] == "assigned"
    assert body["assigned_to"] == technician.id

    resp = client.put(
        f"/api/complaints/{complaint['id']}",
        json={"status": "resolved", "resolution_notes": "Washer replaced"},
        headers=headers,
    )
    body = resp.get_json()["complaint"]
    assert body["resolved_at"] is not None
    assert body["resolution_notes"] == "Washer replaced"

    resp = client.put(f"/api/complaints/{complaint['id']}", json={"status": "in_progress"}, headers=headers)
    assert resp.get_json()["complaint"]["resolved_at"] is None


def test_assignee_must_belong_to_organization(client, guard, manager, make_user, other_org):
    outsider = make_user(["TECHNICIAN"], other_org)
    complaint = _complaint(client, guard).get_json()["complaint"]
    resp = client.put(
        f"/api/complaints/{complaint['id']}", json={"assigned_to": outsider.id}, headers=auth_headers(manager)
    )
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Assigned user does not belong to the same organization"


def test_convert_complaint_to_work_order(client, guard, manager, technician, unit, building):
    headers = auth_headers(manager)
    no_unit = _complaint(client, guard).get_json()["complaint"]
    resp = client.post(f"/api/complaints/{no_unit['id']}/convert", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Complaint must be associated with a unit to create work order"

    complaint = _complaint(
        client, guard, unit_id=unit.id, type="maintenance_request",
        maintenance_category="plumbing", urgency="emergency",
    ).get_json()["complaint"]
    resp = client.post(
        f"/api/complaints/{complaint['id']}/convert", json={"assigned_to": technician.id}, headers=headers
    )
    assert resp.status_code == 201
    body = resp.get_json()
    work_order = body["work_order"]
    assert work_order["category"] == "plumbing"
    assert work_order["priority"] == "urgent"
    assert work_order["building_id"] == building.id
    assert work_order["status"] == "assigned"
    assert work_order["complaint_id"] == complaint["id"]
    assert body["complaint"]["status"] == "in_progress"
    assert body["complaint"]["linked_work_order_id"] == work_order["id"]

    resp = client.post(f"/api/complaints/{complaint['id']}/convert", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Complaint already has a linked work order"


def test_work_order_lifecycle(client, manager, technician, building):
    headers = auth_headers(manager)
    resp = client.post(
        "/api/work-orders",
        json={
            "building_id": building.id,
            "title": "Replace lobby lights",
            "description": "Three fixtures out",
            "category": "electrical",
            "assigned_to": technician.id,
        },
        headers=headers,
    )
    assert resp.status_code == 201
    work_order = resp.get_json()["work_order"]
    assert work_order["status"] == "assigned"

    client.post(
        "/api/work-orders",
        json={"building_id": building.id, "title": "Paint", "description": "Stairwell", "category": "other"},
        headers=headers,
    )

    tech_headers = auth_headers(technician)
    mine = client.get("/api/work-orders?mine=1", headers=tech_headers).get_json()
    assert [w["id"] for w in mine["work_orders"]] == [work_order["id"]]

    resp = client.put(f"/api/work-orders/{work_order['id']}", json={"status": "in_progress"}, headers=tech_headers)
    assert resp.get_json()["work_order"]["started_at"] is not None

    resp = client.post(
        f"/api/work-orders/{work_order['id']}/complete",
        json={"actual_cost": 2400, "notes": "Replaced with LED"},
        headers=tech_headers,
    )
    assert resp.status_code == 200
    done = resp.get_json()["work_order"]
    assert done["status"] == "completed"
    assert done["completed_at"] is not None
    assert done["actual_cost"] == 2400.0

    resp = client.post(f"/api/work-orders/{work_order['id']}/complete", json={}, headers=tech_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Work order is already completed"


def test_resident_cannot_list_work_orders(client, tenant_user):
    assert client.get("/api/work-orders", headers=auth_headers(tenant_user)).status_code == 403
