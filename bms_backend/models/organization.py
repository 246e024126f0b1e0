from datetime import datetime

from ..extensions import db


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)

    # Contact
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(20), default="active", nullable=False)  # active, inactive, suspended
    domain = db.Column(db.String(255), unique=True, nullable=True)
    subdomain = db.Column(db.String(100), unique=True, nullable=True)
    settings = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Organization {self.code}: {self.name}>"

    def serialize(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "address": self.address,
            "status": self.status,
            "domain": self.domain,
            "subdomain": self.subdomain,
            "settings": self.settings or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
