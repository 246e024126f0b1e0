from datetime import datetime

from ..extensions import db


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


class ParkingSpace(db.Model):
    __tablename__ = "parking_spaces"
    __table_args__ = (db.UniqueConstraint("building_id", "space_number", name="unique_building_space_number"),)

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False, index=True)
    space_number = db.Column(db.String(30), nullable=False)  # P-001
    space_type = db.Column(db.String(20), nullable=False)  # tenant, visitor, reserved
    status = db.Column(db.String(20), default="available", nullable=False)  # available, occupied, reserved, maintenance
    assigned_to = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id", use_alter=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ParkingSpace {self.space_number} ({self.space_type}) - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "space_number": self.space_number,
            "space_type": self.space_type,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "vehicle_id": self.vehicle_id,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ParkingPricing(db.Model):
    __tablename__ = "parking_pricing"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False, index=True)
    space_type = db.Column(db.String(20), nullable=False)  # tenant, visitor
    pricing_model = db.Column(db.String(20), nullable=False)  # monthly, daily, hourly
    monthly_rate = db.Column(db.Numeric(12, 2), nullable=True)
    daily_rate = db.Column(db.Numeric(12, 2), nullable=True)
    hourly_rate = db.Column(db.Numeric(12, 2), nullable=True)
    currency = db.Column(db.String(3), default="ETB", nullable=False)
    effective_from = db.Column(db.DateTime, nullable=False)
    effective_to = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ParkingPricing {self.id}: {self.space_type}/{self.pricing_model}>"

    def rate_for(self, billing_period):
        return {
            "monthly": self.monthly_rate,
            "daily": self.daily_rate,
            "hourly": self.hourly_rate,
        }.get(billing_period)

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "space_type": self.space_type,
            "pricing_model": self.pricing_model,
            "monthly_rate": _money(self.monthly_rate),
            "daily_rate": _money(self.daily_rate),
            "hourly_rate": _money(self.hourly_rate),
            "currency": self.currency,
            "effective_from": _iso(self.effective_from),
            "effective_to": _iso(self.effective_to),
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


class ParkingAssignment(db.Model):
    __tablename__ = "parking_assignments"
    __table_args__ = (
        db.Index("ix_parking_assignments_org_building_status", "organization_id", "building_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    parking_space_id = db.Column(db.Integer, db.ForeignKey("parking_spaces.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False)
    assignment_type = db.Column(db.String(20), nullable=False)  # tenant, visitor
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True, index=True)
    visitor_log_id = db.Column(db.Integer, db.ForeignKey("visitor_logs.id"), nullable=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=True)
    actual_start_time = db.Column(db.DateTime, nullable=True)
    actual_end_time = db.Column(db.DateTime, nullable=True)
    calculated_duration = db.Column(db.Integer, nullable=True)  # minutes
    billed_duration = db.Column(db.Integer, nullable=True)  # minutes
    calculated_amount = db.Column(db.Numeric(12, 2), nullable=True)

    pricing_id = db.Column(db.Integer, db.ForeignKey("parking_pricing.id"), nullable=True)
    billing_period = db.Column(db.String(20), nullable=False)  # monthly, daily, hourly
    rate = db.Column(db.Numeric(12, 2), nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    status = db.Column(db.String(20), default="active", nullable=False)  # active, completed, cancelled

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parking_space = db.relationship("ParkingSpace", backref="assignments")

    def __repr__(self):
        return f"<ParkingAssignment {self.id}: space {self.parking_space_id} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "parking_space_id": self.parking_space_id,
            "building_id": self.building_id,
            "assignment_type": self.assignment_type,
            "tenant_id": self.tenant_id,
            "visitor_log_id": self.visitor_log_id,
            "vehicle_id": self.vehicle_id,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "actual_start_time": _iso(self.actual_start_time),
            "actual_end_time": _iso(self.actual_end_time),
            "calculated_duration": self.calculated_duration,
            "billed_duration": self.billed_duration,
            "calculated_amount": _money(self.calculated_amount),
            "pricing_id": self.pricing_id,
            "billing_period": self.billing_period,
            "rate": _money(self.rate),
            "invoice_id": self.invoice_id,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Vehicle(db.Model):
    __tablename__ = "vehicles"
    __table_args__ = (db.UniqueConstraint("organization_id", "plate_number", name="unique_org_plate_number"),)

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True, index=True)
    plate_number = db.Column(db.String(20), nullable=False)
    make = db.Column(db.String(50), nullable=True)
    model = db.Column(db.String(50), nullable=True)
    color = db.Column(db.String(30), nullable=True)
    parking_space_id = db.Column(db.Integer, db.ForeignKey("parking_spaces.id"), nullable=True)
    status = db.Column(db.String(20), default="active", nullable=False)  # active, inactive
    is_temporary = db.Column(db.Boolean, default=False, nullable=False)
    visitor_log_id = db.Column(db.Integer, db.ForeignKey("visitor_logs.id"), nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Vehicle {self.plate_number}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "tenant_id": self.tenant_id,
            "plate_number": self.plate_number,
            "make": self.make,
            "model": self.model,
            "color": self.color,
            "parking_space_id": self.parking_space_id,
            "status": self.status,
            "is_temporary": self.is_temporary,
            "visitor_log_id": self.visitor_log_id,
            "expires_at": _iso(self.expires_at),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
        }


class ParkingLog(db.Model):
    __tablename__ = "parking_logs"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    parking_space_id = db.Column(db.Integer, db.ForeignKey("parking_spaces.id"), nullable=False)
    log_type = db.Column(db.String(10), nullable=False)  # entry, exit
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    logged_by = db.Column(db.String(30), nullable=False, default="system")  # user id or "system"
    assignment_id = db.Column(db.Integer, db.ForeignKey("parking_assignments.id"), nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # minutes, on exit
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ParkingLog {self.log_type} vehicle {self.vehicle_id} at {self.timestamp}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "vehicle_id": self.vehicle_id,
            "parking_space_id": self.parking_space_id,
            "log_type": self.log_type,
            "timestamp": _iso(self.timestamp),
            "logged_by": self.logged_by,
            "assignment_id": self.assignment_id,
            "duration": self.duration,
            "notes": self.notes,
        }


class ParkingViolation(db.Model):
    __tablename__ = "parking_violations"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False)
    parking_space_id = db.Column(db.Integer, db.ForeignKey("parking_spaces.id"), nullable=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True)

    violation_type = db.Column(db.String(30), nullable=False)
    severity = db.Column(db.String(10), nullable=False)  # warning, fine, tow
    status = db.Column(db.String(20), default="reported", nullable=False)  # reported, resolved, appealed
    fine_amount = db.Column(db.Numeric(12, 2), nullable=True)

    reported_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    reported_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    resolved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)
    photos = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ParkingViolation {self.id}: {self.violation_type} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "parking_space_id": self.parking_space_id,
            "vehicle_id": self.vehicle_id,
            "tenant_id": self.tenant_id,
            "violation_type": self.violation_type,
            "severity": self.severity,
            "status": self.status,
            "fine_amount": _money(self.fine_amount),
            "reported_by": self.reported_by,
            "reported_at": _iso(self.reported_at),
            "resolved_by": self.resolved_by,
            "resolved_at": _iso(self.resolved_at),
            "resolution_notes": self.resolution_notes,
            "photos": self.photos or [],
            "notes": self.notes,
            "created_at": _iso(self.created_at),
        }
