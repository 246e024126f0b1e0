from datetime import datetime

import pytest

from bms_backend.extensions import db
from bms_backend.models import Tenant
from bms_backend.services import visitor_analytics as analytics
from bms_backend.services import visitors as svc

from .conftest import auth_headers


@pytest.fixture
def visits(org, building, tenant):
    neighbour = Tenant(organization_id=org.id, first_name="Hana", last_name="G", primary_phone="+251922000099")
    db.session.add(neighbour)
    db.session.commit()

    def visit(host, purpose, entry, exit=None):
        log = svc.create_visitor_log(org.id, {
            "building_id": building.id,
            "visitor_name": "Guest",
            "host_tenant_id": host.id,
            "purpose": purpose,
            "entry_time": entry,
        })
        if exit:
            svc.log_visitor_exit(log, exit)
        return log

    return [
        visit(tenant, "Delivery", "2024-05-10T09:00:00Z", "2024-05-10T09:30:00Z"),
        visit(tenant, "Delivery ", "2024-05-11T09:15:00Z", "2024-05-11T10:15:00Z"),
        visit(neighbour, "Meeting", "2024-06-01T14:00:00Z"),
    ]


def test_create_visitor_log(client, guard, building, tenant):
    resp = client.post(
        "/api/visitor-logs",
        json={
            "building_id": building.id,
            "visitor_name": "Dawit",
            "host_tenant_id": tenant.id,
            "purpose": "Family visit",
            "vehicle_plate_number": " aa 2-555 ",
        },
        headers=auth_headers(guard),
    )
    assert resp.status_code == 201
    log = resp.get_json()["visitor_log"]
    assert log["logged_by"] == guard.id
    assert log["vehicle_plate_number"] == "AA 2-555"
    assert log["exit_time"] is None


def test_create_visitor_log_validation(client, guard, building, tenant):
    resp = client.post(
        "/api/visitor-logs",
        json={"building_id": building.id, "visitor_name": "Dawit", "host_tenant_id": tenant.id},
        headers=auth_headers(guard),
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "visitorName, hostTenantId, and purpose are required"


def test_exit_rules(client, guard, visits):
    headers = auth_headers(guard)
    active = visits[2]
    resp = client.post(f"/api/visitor-logs/{active.id}/exit", json={"exit_time": "2024-06-01T13:00:00Z"}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Exit time cannot be before entry time"

    resp = client.post(f"/api/visitor-logs/{active.id}/exit", json={"exit_time": "2024-06-01T15:00:00Z"}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["visitor_log"]["exit_time"] == "2024-06-01T15:00:00"

    resp = client.post(f"/api/visitor-logs/{active.id}/exit", json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Visitor has already exited"


def test_active_visitors_and_tenant_access(client, guard, tenant_user, visits):
    body = client.get("/api/visitor-logs/active", headers=auth_headers(guard)).get_json()
    assert [v["id"] for v in body["visitor_logs"]] == [visits[2].id]
    assert client.get("/api/visitor-logs", headers=auth_headers(tenant_user)).status_code == 403


def test_statistics_and_breakdowns(org, building, tenant, visits):
    window = (datetime(2024, 5, 1), datetime(2024, 6, 30, 23, 59, 59))
    stats = analytics.get_visitor_statistics(building.id, org.id, window)
    assert stats == {"total": 3, "active": 1, "average_visit_duration": 45, "total_visit_duration": 90}

    by_purpose = analytics.get_visitor_by_purpose(building.id, org.id, window)
    assert by_purpose == [
        {"purpose": "Delivery", "count": 2, "percentage": 66.67},
        {"purpose": "Meeting", "count": 1, "percentage": 33.33},
    ]

    hours = analytics.get_visitor_by_time_of_day(building.id, org.id, window)
    assert len(hours) == 24
    assert [(h["hour"], h["count"]) for h in hours[:3]] == [(9, 2), (14, 1), (0, 0)]

    hosts = analytics.get_top_hosts(building.id, org.id, window)
    assert hosts[0]["tenant_id"] == tenant.id
    assert hosts[0]["tenant_name"] == "Abebe Kebede"
    assert hosts[0]["visit_count"] == 2


def test_monthly_trends(org, building, visits):
    trends = analytics.get_visitor_trends(building.id, org.id, period_months=12, now=datetime(2024, 6, 30))
    assert trends == [
        {"period": "2024-05", "count": 2, "average_duration": 45},
        {"period": "2024-06", "count": 1, "average_duration": 0},
    ]


def test_statistics_without_visits(org, building):
    stats = analytics.get_visitor_statistics(building.id, org.id)
    assert stats == {"total": 0, "active": 0, "average_visit_duration": 0, "total_visit_duration": 0}


def test_analytics_route_end_date_is_inclusive(client, guard, building, visits):
    resp = client.get(
        f"/api/visitor-logs/analytics?building_id={building.id}&start_date=2024-05-10&end_date=2024-05-10",
        headers=auth_headers(guard),
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["statistics"]["total"] == 1
    assert set(body) == {"statistics", "trends", "top_hosts", "by_purpose", "by_time_of_day"}

    resp = client.get("/api/visitor-logs/analytics?start_date=yesterday", headers=auth_headers(guard))
    assert resp.status_code == 400
