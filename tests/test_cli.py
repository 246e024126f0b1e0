import json
from datetime import date, timedelta

from bms_backend.extensions import db
from bms_backend.models import Invoice, User
from bms_backend.services import invoices as invoice_svc


def test_seed_super_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-super-admin", "--email", "Root@BMS.test", "--password", "s3cret-pass"])
    assert result.exit_code == 0, result.output
    created = json.loads(result.output.strip().splitlines()[-1])
    user = db.session.get(User, created["id"])
    assert user.email == "root@bms.test"
    assert user.roles == ["SUPER_ADMIN"]
    assert user.organization_id is None
    assert user.check_password("s3cret-pass")

    result = runner.invoke(args=["seed-super-admin", "--email", "root@bms.test", "--password", "rotated-pass"])
    assert result.exit_code == 0
    assert User.query.filter_by(email="root@bms.test").count() == 1


def test_mark_overdue_command(app, org, lease):
    invoice = invoice_svc.create_invoice(org.id, {
        "lease_id": lease.id,
        "issue_date": "2024-02-01",
        "due_date": "2024-02-05",
        "period_start": "2024-02-01",
        "period_end": "2024-02-29",
        "status": "sent",
        "items": [{"description": "Rent", "amount": 12000, "type": "rent"}],
    })
    result = app.test_cli_runner().invoke(args=["mark-overdue", "--org-id", str(org.id)])
    assert result.exit_code == 0, result.output
    assert f"org {org.id}: 1 invoices marked overdue" in result.output
    assert db.session.get(Invoice, invoice.id).status == "overdue"


def test_send_payment_reminders_command(app, org, lease):
    today = date.today()
    invoice_svc.create_invoice(org.id, {
        "lease_id": lease.id,
        "issue_date": (today - timedelta(days=20)).isoformat(),
        "due_date": today.isoformat(),
        "period_start": (today - timedelta(days=20)).isoformat(),
        "period_end": (today + timedelta(days=9)).isoformat(),
        "status": "sent",
        "items": [{"description": "Rent", "amount": 12000, "type": "rent"}],
    })
    result = app.test_cli_runner().invoke(args=["send-payment-reminders", "--org-id", str(org.id)])
    assert result.exit_code == 0, result.output
    assert f"org {org.id}: 1 reminders sent, 0 failed" in result.output
