from datetime import date, datetime

from ..extensions import db


class Lease(db.Model):
    __tablename__ = "leases"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)

    # Lease Terms
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)  # None for month-to-month

    # Financial Terms
    rent_amount = db.Column(db.Numeric(12, 2), nullable=False)
    deposit_amount = db.Column(db.Numeric(12, 2), nullable=True)
    billing_cycle = db.Column(db.String(20), nullable=False, default="monthly")  # monthly, quarterly, annually
    due_day = db.Column(db.Integer, nullable=False, default=1)  # Day of month rent is due
    additional_charges = db.Column(db.JSON, nullable=True)  # [{name, amount, frequency}]

    # Status
    status = db.Column(db.String(20), default="active", nullable=False)  # active, expired, terminated, pending
    termination_date = db.Column(db.Date, nullable=True)
    termination_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Lease {self.id}: {self.start_date} to {self.end_date}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "tenant_id": self.tenant_id,
            "unit_id": self.unit_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "rent_amount": float(self.rent_amount),
            "deposit_amount": float(self.deposit_amount) if self.deposit_amount is not None else None,
            "billing_cycle": self.billing_cycle,
            "due_day": self.due_day,
            "additional_charges": self.additional_charges or [],
            "status": self.status,
            "termination_date": self.termination_date.isoformat() if self.termination_date else None,
            "termination_reason": self.termination_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "tenant_name": self.tenant.full_name if self.tenant else None,
            "unit_number": self.unit.unit_number if self.unit else None,
        }

    @property
    def days_until_expiration(self):
        if self.end_date is None:
            return None
        return max(0, (self.end_date - date.today()).days)

    def activate(self):
        """Activate the lease and occupy the unit"""
        self.status = "active"
        if self.unit:
            self.unit.status = "occupied"

    def terminate(self, termination_date=None, reason=None):
        """Terminate the lease and free the unit"""
        self.status = "terminated"
        self.termination_date = termination_date or date.today()
        self.termination_reason = reason
        if self.unit:
            self.unit.status = "available"
