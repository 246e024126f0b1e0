from datetime import datetime

import pytest

from bms_backend.extensions import db
from bms_backend.models import Invoice, ParkingLog, ParkingSpace, VisitorLog
from bms_backend.services import parking as svc

from .conftest import auth_headers


@pytest.fixture
def space(org, building):
    space = ParkingSpace(
        organization_id=org.id, building_id=building.id, space_number="P-01", space_type="tenant", status="available"
    )
    db.session.add(space)
    db.session.commit()
    return space


@pytest.fixture
def monthly_pricing(org, building):
    return svc.create_parking_pricing(org.id, {
        "building_id": building.id,
        "space_type": "tenant",
        "pricing_model": "monthly",
        "monthly_rate": 1500,
        "effective_from": "2024-01-01T00:00:00Z",
    })


@pytest.fixture
def vehicle(org, tenant):
    return svc.create_vehicle(org.id, {"plate_number": "aa 3-12345", "tenant_id": tenant.id, "make": "Toyota"})


def test_parking_charge_models():
    start = datetime(2024, 6, 1, 8, 0)
    assert svc.calculate_parking_charge("hourly", 20, start, datetime(2024, 6, 1, 10, 30)) == (150, 180, 60)
    assert svc.calculate_parking_charge("daily", 100, start, datetime(2024, 6, 2, 9, 0)) == (1500, 2880, 200)
    calculated, billed, amount = svc.calculate_parking_charge("monthly", 1500, start, datetime(2024, 6, 3, 8, 0))
    assert (calculated, billed, amount) == (2880, 2880, 1500)
    assert svc.calculate_parking_charge("hourly", 20, start, datetime(2024, 6, 1, 8, 1, 30))[0] == 2


def test_pricing_requires_rate_for_model(client, admin, building):
    resp = client.post(
        "/api/parking/pricing",
        json={
            "building_id": building.id,
            "space_type": "visitor",
            "pricing_model": "hourly",
            "daily_rate": 100,
            "effective_from": "2024-01-01T00:00:00Z",
        },
        headers=auth_headers(admin),
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Hourly rate is required for visitor hourly parking"


def test_active_pricing_lookup_and_deactivate(client, admin, building, monthly_pricing):
    headers = auth_headers(admin)
    url = f"/api/parking/pricing/active?building_id={building.id}&space_type=tenant&at=2024-06-01T00:00:00Z"
    assert client.get(url, headers=headers).get_json()["pricing"]["id"] == monthly_pricing.id

    early = f"/api/parking/pricing/active?building_id={building.id}&space_type=tenant&at=2023-06-01T00:00:00Z"
    assert client.get(early, headers=headers).get_json()["pricing"] is None

    resp = client.delete(f"/api/parking/pricing/{monthly_pricing.id}", headers=headers)
    assert resp.get_json()["pricing"]["is_active"] is False
    assert client.get(url, headers=headers).get_json()["pricing"] is None


def test_space_number_unique_per_building(client, admin, building, space):
    resp = client.post(
        "/api/parking/spaces",
        json={"building_id": building.id, "space_number": "P-01", "space_type": "tenant"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 409


def test_assignment_uses_active_pricing_and_bills_on_end(client, manager, space, tenant, vehicle, monthly_pricing):
    headers = auth_headers(manager)
    resp = client.post(
        "/api/parking/assignments",
        json={
            "parking_space_id": space.id,
            "assignment_type": "tenant",
            "tenant_id": tenant.id,
            "vehicle_id": vehicle.id,
            "start_date": "2024-06-01T08:00:00Z",
            "actual_start_time": "2024-06-01T08:00:00Z",
        },
        headers=headers,
    )
    assert resp.status_code == 201
    assignment = resp.get_json()["assignment"]
    assert assignment["pricing_id"] == monthly_pricing.id
    assert assignment["billing_period"] == "monthly"
    assert assignment["rate"] == 1500.0
    assert db.session.get(ParkingSpace, space.id).status == "occupied"

    again = client.post(
        "/api/parking/assignments",
        json={"parking_space_id": space.id, "assignment_type": "tenant", "tenant_id": tenant.id},
        headers=headers,
    )
    assert again.status_code == 409

    resp = client.post(
        f"/api/parking/assignments/{assignment['id']}/end",
        json={"actual_end_time": "2024-06-01T10:00:00Z"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["calculated_amount"] == 1500.0
    assert body["assignment"]["status"] == "completed"
    assert body["invoice_generated"] is False
    assert body["assignment"]["invoice_id"] is None
    assert body["assignment"]["calculated_duration"] == 120
    assert db.session.get(ParkingSpace, space.id).status == "available"

    logs = ParkingLog.query.filter_by(assignment_id=assignment["id"]).order_by(ParkingLog.id).all()
    assert [log.log_type for log in logs] == ["entry", "exit"]
    assert logs[1].duration == 120

    resp = client.post(f"/api/parking/assignments/{assignment['id']}/end", json={}, headers=headers)
    assert resp.status_code == 400


def _visitor_assignment(client, headers, org, building, host):
    space = ParkingSpace(
        organization_id=org.id, building_id=building.id, space_number="V-01", space_type="visitor", status="available"
    )
    visit = VisitorLog(
        organization_id=org.id, building_id=building.id, visitor_name="Dawit", host_tenant_id=host.id,
        purpose="Meeting", entry_time=datetime(2024, 6, 1, 8, 0),
    )
    db.session.add_all([space, visit])
    db.session.commit()
    svc.create_parking_pricing(org.id, {
        "building_id": building.id,
        "space_type": "visitor",
        "pricing_model": "hourly",
        "hourly_rate": 20,
        "effective_from": "2024-01-01T00:00:00Z",
    })
    resp = client.post(
        "/api/parking/assignments",
        json={
            "parking_space_id": space.id,
            "assignment_type": "visitor",
            "visitor_log_id": visit.id,
            "start_date": "2024-06-01T08:00:00Z",
            "actual_start_time": "2024-06-01T08:00:00Z",
        },
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.get_json()["assignment"]


def test_ending_visitor_stay_bills_the_host(client, manager, org, building, tenant, lease):
    headers = auth_headers(manager)
    assignment = _visitor_assignment(client, headers, org, building, tenant)
    assert assignment["billing_period"] == "hourly"

    resp = client.post(
        f"/api/parking/assignments/{assignment['id']}/end",
        json={"end_date": "2024-06-01T10:30:00Z"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["calculated_amount"] == 60.0
    assert body["invoice_generated"] is True

    invoice = db.session.get(Invoice, body["assignment"]["invoice_id"])
    assert invoice.tenant_id == tenant.id
    assert invoice.lease_id == lease.id
    assert invoice.status == "draft"
    assert float(invoice.total) == 60.0
    assert invoice.items[0]["type"] == "charge"
    assert invoice.items[0]["description"] == "Parking fee - hourly (visitor)"
    assert invoice.period_start.isoformat() == "2024-06-01"


def test_ending_stay_without_invoice(client, manager, org, building, tenant, lease):
    headers = auth_headers(manager)
    assignment = _visitor_assignment(client, headers, org, building, tenant)
    resp = client.post(
        f"/api/parking/assignments/{assignment['id']}/end",
        json={"end_date": "2024-06-01T09:00:00Z", "generate_invoice": False},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["invoice_generated"] is False
    assert Invoice.query.count() == 0


def test_ending_stay_for_host_without_lease_still_completes(client, manager, org, building, tenant):
    headers = auth_headers(manager)
    assignment = _visitor_assignment(client, headers, org, building, tenant)
    resp = client.post(
        f"/api/parking/assignments/{assignment['id']}/end",
        json={"end_date": "2024-06-01T09:00:00Z"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["assignment"]["status"] == "completed"
    assert body["invoice_generated"] is False
    assert Invoice.query.count() == 0


def test_assignment_without_pricing_is_rejected(client, manager, space, tenant):
    resp = client.post(
        "/api/parking/assignments",
        json={"parking_space_id": space.id, "assignment_type": "tenant", "tenant_id": tenant.id},
        headers=auth_headers(manager),
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No active pricing found for tenant parking in this building"


def test_visitor_assignment_needs_visitor_log(client, manager, space):
    resp = client.post(
        "/api/parking/assignments",
        json={"parking_space_id": space.id, "assignment_type": "visitor", "billing_period": "hourly", "rate": 20},
        headers=auth_headers(manager),
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Visitor log ID is required for visitor assignments"


def test_cancel_assignment_frees_space(client, manager, space, tenant, monthly_pricing):
    headers = auth_headers(manager)
    assignment = client.post(
        "/api/parking/assignments",
        json={"parking_space_id": space.id, "assignment_type": "tenant", "tenant_id": tenant.id},
        headers=headers,
    ).get_json()["assignment"]
    resp = client.post(f"/api/parking/assignments/{assignment['id']}/cancel", headers=headers)
    assert resp.get_json()["assignment"]["status"] == "cancelled"
    assert db.session.get(ParkingSpace, space.id).status == "available"


def test_vehicle_plates(client, admin, vehicle, tenant_user):
    assert vehicle.plate_number == "AA 3-12345"
    headers = auth_headers(admin)
    resp = client.post("/api/parking/vehicles", json={"plate_number": "AA 3-12345 "}, headers=headers)
    assert resp.status_code == 409

    resp = client.get("/api/parking/vehicles?search=3-123", headers=headers)
    assert resp.get_json()["total"] == 1

    mine = client.get("/api/parking/vehicles", headers=auth_headers(tenant_user)).get_json()
    assert [v["id"] for v in mine["vehicles"]] == [vehicle.id]

    resp = client.delete(f"/api/parking/vehicles/{vehicle.id}", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["vehicle"]["status"] == "inactive"


def test_violations(client, guard, manager, technician, building, vehicle):
    resp = client.post(
        "/api/parking/violations",
        json={"building_id": building.id, "violation_type": "no_permit"},
        headers=auth_headers(guard),
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "violationType and severity are required"

    payload = {"building_id": building.id, "violation_type": "no_permit", "severity": "fine",
               "fine_amount": 500, "vehicle_id": vehicle.id}
    assert client.post("/api/parking/violations", json=payload, headers=auth_headers(technician)).status_code == 403

    resp = client.post("/api/parking/violations", json=payload, headers=auth_headers(guard))
    assert resp.status_code == 201
    violation = resp.get_json()["violation"]
    assert violation["status"] == "reported"
    assert violation["reported_by"] == guard.id

    resp = client.put(
        f"/api/parking/violations/{violation['id']}",
        json={"status": "resolved", "resolution_notes": "Fine paid"},
        headers=auth_headers(manager),
    )
    resolved = resp.get_json()["violation"]
    assert resolved["resolved_by"] == manager.id
    assert resolved["resolved_at"] is not None
    assert resolved["resolution_notes"] == "Fine paid"


def test_manual_parking_log(client, guard, space, vehicle):
    resp = client.post(
        "/api/parking/logs",
        json={"vehicle_id": vehicle.id, "parking_space_id": space.id, "log_type": "entry"},
        headers=auth_headers(guard),
    )
    assert resp.status_code == 201
    assert resp.get_json()["log"]["logged_by"] == str(guard.id)
