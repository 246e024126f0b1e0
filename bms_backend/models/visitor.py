from datetime import datetime

from ..extensions import db


class VisitorLog(db.Model):
    __tablename__ = "visitor_logs"
    __table_args__ = (
        db.Index("ix_visitor_logs_org_building_entry", "organization_id", "building_id", "entry_time"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False)

    # Visitor
    visitor_name = db.Column(db.String(200), nullable=False)
    visitor_phone = db.Column(db.String(30), nullable=True)
    visitor_id_number = db.Column(db.String(50), nullable=True)
    host_tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    host_unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True)
    purpose = db.Column(db.String(255), nullable=False)
    vehicle_plate_number = db.Column(db.String(20), nullable=True)
    parking_space_id = db.Column(db.Integer, db.ForeignKey("parking_spaces.id"), nullable=True)

    entry_time = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    exit_time = db.Column(db.DateTime, nullable=True)
    logged_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    host_tenant = db.relationship("Tenant")

    def __repr__(self):
        return f"<VisitorLog {self.id}: {self.visitor_name} -> tenant {self.host_tenant_id}>"

    @property
    def duration_minutes(self):
        if self.exit_time is None or self.entry_time is None:
            return None
        return (self.exit_time - self.entry_time).total_seconds() / 60

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "visitor_name": self.visitor_name,
            "visitor_phone": self.visitor_phone,
            "visitor_id_number": self.visitor_id_number,
            "host_tenant_id": self.host_tenant_id,
            "host_unit_id": self.host_unit_id,
            "purpose": self.purpose,
            "vehicle_plate_number": self.vehicle_plate_number,
            "parking_space_id": self.parking_space_id,
            "entry_time": self.entry_time.isoformat() if self.entry_time else None,
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "logged_by": self.logged_by,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
