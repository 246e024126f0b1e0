from datetime import datetime

from passlib.hash import pbkdf2_sha256 as hasher

from ..extensions import db


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "phone", name="unique_org_phone"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    phone = db.Column(db.String(30), nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    roles = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(db.String(20), default="active", nullable=False)  # active, invited, inactive, suspended
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True)
    last_login_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = db.relationship("Organization", backref="users")

    def __repr__(self):
        return f"<User {self.id}: {self.phone} {self.roles}>"

    def set_password(self, raw):
        self.password_hash = hasher.hash(raw)

    def check_password(self, raw):
        if not self.password_hash:
            return False
        return hasher.verify(raw, self.password_hash)

    def has_role(self, role):
        return role in (self.roles or [])

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "roles": list(self.roles or []),
            "status": self.status,
            "tenant_id": self.tenant_id,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
