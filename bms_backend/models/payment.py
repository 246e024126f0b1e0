from datetime import datetime

from ..extensions import db


class Payment(db.Model):
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_org_reference", "organization_id", "reference_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Payment details
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)  # cash, bank_transfer, telebirr, cbe_birr, chapa, hellocash, other
    payment_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    reference_number = db.Column(db.String(120), nullable=True)
    currency = db.Column(db.String(3), default="ETB", nullable=False)
    exchange_rate = db.Column(db.Numeric(12, 4), nullable=True)

    # Status tracking
    status = db.Column(db.String(20), default="completed", nullable=False, index=True)  # pending, completed, failed, refunded
    reconciliation_status = db.Column(db.String(20), default="pending", nullable=False)  # pending, reconciled, disputed
    failure_reason = db.Column(db.String(500), nullable=True)

    # External payment processor data
    provider_response = db.Column(db.JSON, nullable=True)
    provider_transaction_id = db.Column(db.String(120), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    receipt_url = db.Column(db.String(500), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    invoice = db.relationship("Invoice", backref="payments")

    def __repr__(self):
        return f"<Payment {self.id}: {self.amount} {self.currency} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "invoice_id": self.invoice_id,
            "tenant_id": self.tenant_id,
            "amount": float(self.amount),
            "payment_method": self.payment_method,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "reference_number": self.reference_number,
            "currency": self.currency,
            "exchange_rate": float(self.exchange_rate) if self.exchange_rate is not None else None,
            "status": self.status,
            "reconciliation_status": self.reconciliation_status,
            "failure_reason": self.failure_reason,
            "provider_response": self.provider_response,
            "provider_transaction_id": self.provider_transaction_id,
            "notes": self.notes,
            "receipt_url": self.receipt_url,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PaymentIntent(db.Model):
    __tablename__ = "payment_intents"
    __table_args__ = (
        db.Index("ix_payment_intents_org_tenant_status", "organization_id", "tenant_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), default="ETB", nullable=False)
    provider = db.Column(db.String(20), nullable=False)  # telebirr, cbe_birr, chapa, hellocash, bank_transfer
    status = db.Column(db.String(20), default="pending", nullable=False)  # pending, processing, completed, failed, cancelled

    provider_metadata = db.Column(db.JSON, nullable=True)
    redirect_url = db.Column(db.String(1000), nullable=True)
    payment_instructions = db.Column(db.Text, nullable=True)
    reference_number = db.Column(db.String(120), nullable=True, index=True)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = db.relationship("Tenant")
    invoice = db.relationship("Invoice")

    def __repr__(self):
        return f"<PaymentIntent {self.id}: {self.provider} {self.amount} - {self.status}>"

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at < datetime.utcnow()

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "invoice_id": self.invoice_id,
            "tenant_id": self.tenant_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "provider": self.provider,
            "status": self.status,
            "provider_metadata": self.provider_metadata,
            "redirect_url": self.redirect_url,
            "payment_instructions": self.payment_instructions,
            "reference_number": self.reference_number,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
