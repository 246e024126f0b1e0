from datetime import datetime

from ..extensions import db


class Building(db.Model):
    __tablename__ = "buildings"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.JSON, nullable=True)  # street, city, region, postal_code
    building_type = db.Column(db.String(20), nullable=False, default="residential")  # residential, commercial, mixed

    total_floors = db.Column(db.Integer, nullable=True)
    total_units = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(30), default="active", nullable=False)  # active, under-construction, inactive
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    settings = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    units = db.relationship("Unit", backref="building", lazy=True)

    def __repr__(self):
        return f"<Building {self.id}: {self.name}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "address": self.address or {},
            "building_type": self.building_type,
            "total_floors": self.total_floors,
            "total_units": self.total_units,
            "status": self.status,
            "manager_id": self.manager_id,
            "settings": self.settings or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "unit_count": len(self.units),
        }


class Unit(db.Model):
    __tablename__ = "units"
    __table_args__ = (db.UniqueConstraint("building_id", "unit_number", name="unique_building_unit_number"),)

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False, index=True)
    unit_number = db.Column(db.String(50), nullable=False)

    # Unit details
    floor = db.Column(db.Integer, nullable=True)
    unit_type = db.Column(db.String(20), nullable=False, default="apartment")  # apartment, office, shop, warehouse, parking
    area = db.Column(db.Numeric(10, 2), nullable=True)  # square meters
    bedrooms = db.Column(db.Integer, nullable=True)
    bathrooms = db.Column(db.Integer, nullable=True)
    rent_amount = db.Column(db.Numeric(12, 2), nullable=True)

    status = db.Column(db.String(20), default="available", nullable=False)  # available, occupied, maintenance, reserved

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    leases = db.relationship("Lease", backref="unit", lazy=True)

    def __repr__(self):
        return f"<Unit {self.id}: {self.unit_number} at Building {self.building_id}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "unit_number": self.unit_number,
            "floor": self.floor,
            "unit_type": self.unit_type,
            "area": float(self.area) if self.area is not None else None,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "rent_amount": float(self.rent_amount) if self.rent_amount is not None else None,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "building_name": self.building.name if self.building else None,
        }

    @property
    def active_lease(self):
        return next((lease for lease in self.leases if lease.status == "active"), None)
