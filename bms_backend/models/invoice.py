from datetime import datetime

from ..extensions import db


class Invoice(db.Model):
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "invoice_number", name="unique_org_invoice_number"),
        db.Index("ix_invoices_org_tenant_status", "organization_id", "tenant_id", "status"),
        db.Index("ix_invoices_org_lease_status", "organization_id", "lease_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    lease_id = db.Column(db.Integer, db.ForeignKey("leases.id"), nullable=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True)
    invoice_number = db.Column(db.String(30), nullable=False)  # INV-2024-001

    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)

    items = db.Column(db.JSON, nullable=False, default=list)  # [{description, amount, type}]
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(20), default="draft", nullable=False, index=True)  # draft, sent, paid, overdue, cancelled
    paid_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Ad-hoc billing
    invoice_type = db.Column(db.String(20), default="rent", nullable=False)  # rent, maintenance, penalty, other
    linked_work_order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id"), nullable=True)
    linked_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=True)
    currency = db.Column(db.String(3), default="ETB", nullable=False)
    exchange_rate = db.Column(db.Numeric(12, 4), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = db.relationship("Tenant", backref="invoices")
    lease = db.relationship("Lease", backref="invoices")

    def __repr__(self):
        return f"<Invoice {self.invoice_number}: {self.total} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "lease_id": self.lease_id,
            "tenant_id": self.tenant_id,
            "unit_id": self.unit_id,
            "invoice_number": self.invoice_number,
            "issue_date": self.issue_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "items": self.items or [],
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
            "status": self.status,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "notes": self.notes,
            "invoice_type": self.invoice_type,
            "linked_work_order_id": self.linked_work_order_id,
            "linked_invoice_id": self.linked_invoice_id,
            "vat_rate": float(self.vat_rate) if self.vat_rate is not None else None,
            "currency": self.currency,
            "exchange_rate": float(self.exchange_rate) if self.exchange_rate is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
