from datetime import datetime

from ..extensions import db


class Tenant(db.Model):
    __tablename__ = "tenants"
    __table_args__ = (db.UniqueConstraint("organization_id", "primary_phone", name="unique_org_tenant_phone"),)

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Personal Information
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    primary_phone = db.Column(db.String(30), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    national_id = db.Column(db.String(50), nullable=True)
    language = db.Column(db.String(5), nullable=True)  # am, en, om, ti

    status = db.Column(db.String(20), default="active", nullable=False)  # active, inactive, suspended
    emergency_contact = db.Column(db.JSON, nullable=True)  # name, phone
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    leases = db.relationship("Lease", backref="tenant", lazy=True)

    def __repr__(self):
        return f"<Tenant {self.id}: {self.full_name}>"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "primary_phone": self.primary_phone,
            "email": self.email,
            "national_id": self.national_id,
            "language": self.language,
            "status": self.status,
            "emergency_contact": self.emergency_contact,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
