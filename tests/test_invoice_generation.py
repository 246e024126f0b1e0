from datetime import date

import pytest

from bms_backend.extensions import db
from bms_backend.models import Invoice, Lease, Unit
from bms_backend.services import invoice_generation as gen
from bms_backend.errors import ConflictError, ValidationError

from .conftest import auth_headers


def test_prorated_amount_rounds_half_up():
    assert gen.calculate_prorated_amount(12000, 31, 16) == 6194
    assert gen.calculate_prorated_amount(1000, 30, 15) == 500
    assert gen.calculate_prorated_amount(1000, 0, 15) == 0
    assert gen.calculate_prorated_amount(1000, 30, 0) == 0


def test_days_in_billing_cycle():
    assert gen.get_days_in_billing_cycle("monthly", date(2024, 2, 1)) == 29
    assert gen.get_days_in_billing_cycle("quarterly", date(2024, 1, 1)) == 91
    assert gen.get_days_in_billing_cycle("annually", date(2024, 1, 1)) == 366
    assert gen.get_days_in_billing_cycle("weekly", date(2024, 1, 1)) == 30


def test_period_dates():
    assert gen.calculate_period_dates("monthly", date(2024, 2, 15)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert gen.calculate_period_dates("quarterly", date(2024, 2, 15)) == (date(2024, 2, 1), date(2024, 4, 30))
    assert gen.calculate_period_dates("annually", date(2023, 3, 9)) == (date(2023, 3, 1), date(2024, 2, 29))


def test_due_date_rolls_over_and_clamps():
    assert gen.calculate_due_date(date(2024, 1, 3), 5) == date(2024, 1, 5)
    assert gen.calculate_due_date(date(2024, 1, 20), 5) == date(2024, 2, 5)
    assert gen.calculate_due_date(date(2024, 2, 10), 31) == date(2024, 2, 29)
    assert gen.calculate_due_date(date(2024, 1, 31), 30) == date(2024, 2, 29)


def test_charges_for_billing_cycle():
    charges = [
        {"name": "Service", "amount": 500, "frequency": "monthly"},
        {"name": "Key", "amount": 100, "frequency": "one-time"},
        {"name": "Insurance", "amount": 900, "frequency": "quarterly"},
    ]
    assert [c["name"] for c in gen.get_charges_for_billing_cycle(charges, "monthly")] == ["Service"]
    assert [c["name"] for c in gen.get_charges_for_billing_cycle(charges, "quarterly")] == ["Insurance"]
    assert gen.get_charges_for_billing_cycle(None, "monthly") == []


def test_items_from_lease_full_and_partial(lease):
    items = gen.generate_invoice_items_from_lease(lease, date(2024, 3, 1), date(2024, 3, 31))
    assert items == [
        {"description": "Monthly Rent", "amount": 12000.0, "type": "rent"},
        {"description": "Service fee", "amount": 500.0, "type": "charge"},
    ]

    items = gen.generate_invoice_items_from_lease(lease, date(2024, 3, 16), date(2024, 3, 31), True)
    assert [i["amount"] for i in items] == [6194, 258]


def test_batch_generation_and_duplicates(org, lease):
    results = gen.generate_invoices_for_leases(org.id, "2024-03-01", "2024-03-31")
    assert len(results) == 1
    assert results[0]["success"] is True
    invoice = db.session.get(Invoice, results[0]["invoice_id"])
    assert float(invoice.total) == 12500
    assert invoice.status == "draft"
    assert invoice.period_start == date(2024, 3, 1)

    again = gen.generate_invoices_for_leases(org.id, "2024-03-01", "2024-03-31")
    assert again[0]["success"] is False
    assert again[0]["error"] == "Invoice already exists for this period"

    forced = gen.generate_invoices_for_leases(org.id, "2024-03-01", "2024-03-31", force_regenerate=True)
    assert forced[0]["success"] is True


def test_batch_generation_clamps_to_lease_dates(org, tenant, building):
    unit = Unit(organization_id=org.id, building_id=building.id, unit_number="201")
    db.session.add(unit)
    db.session.commit()
    lease = Lease(
        organization_id=org.id, tenant_id=tenant.id, unit_id=unit.id,
        start_date=date(2024, 3, 16), rent_amount=12000, status="active", due_day=1,
    )
    future = Lease(
        organization_id=org.id, tenant_id=tenant.id, unit_id=unit.id,
        start_date=date(2024, 5, 1), rent_amount=12000, status="active", due_day=1,
    )
    db.session.add_all([lease, future])
    db.session.commit()

    results = {r["lease_id"]: r for r in gen.generate_invoices_for_leases(org.id, "2024-03-01", "2024-03-31")}
    assert results[future.id]["error"] == "Lease hasn't started yet"
    invoice = db.session.get(Invoice, results[lease.id]["invoice_id"])
    assert invoice.period_start == date(2024, 3, 16)
    assert invoice.items[0]["amount"] == 6194


def test_batch_generation_rejects_bad_period(org):
    with pytest.raises(ValidationError):
        gen.generate_invoices_for_leases(org.id, "2024-03-31", "2024-03-01")
    with pytest.raises(ValidationError):
        gen.generate_invoices_for_leases(org.id, "not-a-date", "2024-03-01")


def test_single_lease_generation(org, lease):
    invoice = gen.generate_invoice_for_lease(lease.id, org.id, "2024-04-01", "2024-04-30")
    assert float(invoice.subtotal) == 12500
    with pytest.raises(ConflictError):
        gen.generate_invoice_for_lease(lease.id, org.id, "2024-04-01", "2024-04-30")

    custom = gen.generate_invoice_for_lease(
        lease.id, org.id, custom_items=[{"description": "Parking", "amount": 800, "type": "charge"}]
    )
    assert float(custom.total) == 800


def test_generate_route_reports_summary(client, accountant, lease):
    resp = client.post(
        "/api/invoices/generate",
        json={"period_start": "2024-03-01", "period_end": "2024-03-31"},
        headers=auth_headers(accountant),
    )
    assert resp.status_code == 200
    assert resp.get_json()["summary"] == {"total": 1, "successful": 1, "failed": 0}


def test_lease_invoice_route(client, accountant, lease):
    resp = client.post(
        f"/api/leases/{lease.id}/invoices",
        json={"period_start": "2024-05-01", "period_end": "2024-05-31"},
        headers=auth_headers(accountant),
    )
    assert resp.status_code == 201
    assert resp.get_json()["invoice"]["total"] == 12500.0


def test_monthly_run_generates_and_sends(org, lease):
    results = gen.generate_monthly_invoices(org.id, "2024-03-01", "2024-03-31")
    assert len(results) == 1
    run = results[0]
    assert run["organization_id"] == org.id
    assert run["summary"]["successful"] == 1
    assert run["sent_count"] == 1
    invoice = db.session.get(Invoice, run["results"][0]["invoice_id"])
    assert invoice.status == "sent"


def test_monthly_run_covers_active_organizations(client, super_admin, org, other_org, lease):
    other_org.status = "suspended"
    db.session.commit()
    resp = client.post(
        "/api/invoices/generate-monthly",
        json={"period_start": "2024-03-01", "period_end": "2024-03-31", "auto_send": False},
        headers=auth_headers(super_admin),
    )
    assert resp.status_code == 200
    runs = resp.get_json()["organizations"]
    assert [r["organization_id"] for r in runs] == [org.id]
    assert runs[0]["sent_count"] == 0


def test_monthly_route_reads_string_flags(client, accountant, lease):
    headers = auth_headers(accountant)
    resp = client.post(
        "/api/invoices/generate-monthly",
        json={"period_start": "2024-03-01", "period_end": "2024-03-31", "auto_send": "false"},
        headers=headers,
    )
    assert resp.status_code == 200
    run = resp.get_json()["organizations"][0]
    assert run["sent_count"] == 0
    assert db.session.get(Invoice, run["results"][0]["invoice_id"]).status == "draft"

    resp = client.post(
        "/api/invoices/generate-monthly",
        json={"period_start": "2024-03-01", "period_end": "2024-03-31", "force_regenerate": "false"},
        headers=headers,
    )
    assert resp.get_json()["organizations"][0]["summary"]["failed"] == 1

    resp = client.post("/api/invoices/generate-monthly", json={"auto_send": "maybe"}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "auto_send must be a boolean"
