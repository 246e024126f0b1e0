import json
import os

import click

from .extensions import db


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        from . import models  # noqa: F401

        db.create_all()
        click.echo("Database tables created")

    @app.cli.command("generate-monthly-invoices")
    @click.option("--org-id", type=int, default=None, help="Only this organization")
    @click.option("--no-send", is_flag=True, help="Do not send invoices to tenants")
    @click.option("--force", is_flag=True, help="Regenerate even if an invoice exists for the period")
    def generate_monthly_invoices_cmd(org_id, no_send, force):
        """Generate this month's rent invoices."""
        from .services.invoice_generation import generate_monthly_invoices

        results = generate_monthly_invoices(
            organization_id=org_id, auto_send=not no_send, force_regenerate=force
        )
        for result in results:
            summary = result["summary"]
            click.echo(
                f"org {result['organization_id']} ({result['organization_name']}): "
                f"{summary['successful']}/{summary['total']} generated, "
                f"{summary['failed']} failed, {result['sent_count']} sent"
            )

    @app.cli.command("mark-overdue")
    @click.option("--org-id", type=int, default=None)
    def mark_overdue_cmd(org_id):
        """Flip past-due draft/sent invoices to overdue."""
        from .models import Organization
        from .services.invoices import mark_overdue_invoices

        orgs = [org_id] if org_id else [o.id for o in Organization.query.filter_by(status="active").all()]
        for oid in orgs:
            marked = mark_overdue_invoices(oid)
            click.echo(f"org {oid}: {len(marked)} invoices marked overdue")

    @app.cli.command("send-payment-reminders")
    @click.option("--org-id", type=int, default=None)
    def send_payment_reminders_cmd(org_id):
        """Remind tenants about upcoming and overdue invoices."""
        from .models import Organization
        from .services.invoices import process_payment_reminders

        orgs = [org_id] if org_id else [o.id for o in Organization.query.filter_by(status="active").all()]
        for oid in orgs:
            result = process_payment_reminders(oid)
            click.echo(f"org {oid}: {result['reminders_sent']} reminders sent, {len(result['errors'])} failed")

    @app.cli.command("expire-payment-intents")
    def expire_payment_intents_cmd():
        from .services.payment_intents import expire_stale_intents

        click.echo(f"{expire_stale_intents()} payment intents expired")

    @app.cli.command("seed-super-admin")
    @click.option("--email", default=lambda: os.environ.get("SUPER_ADMIN_EMAIL"), required=True)
    @click.option("--phone", default=lambda: os.environ.get("SUPER_ADMIN_PHONE", "+251900000000"))
    @click.option("--password", default=lambda: os.environ.get("SUPER_ADMIN_PASSWORD"), required=True)
    def seed_super_admin_cmd(email, phone, password):
        """Create or update the platform SUPER_ADMIN."""
        from .models import User
        from .security.permissions import SUPER_ADMIN

        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(email=email, phone=phone, name="Super Admin", organization_id=None)
            db.session.add(user)
        user.roles = [SUPER_ADMIN]
        user.status = "active"
        user.set_password(password)
        db.session.commit()
        click.echo(json.dumps({"id": user.id, "email": user.email}))
