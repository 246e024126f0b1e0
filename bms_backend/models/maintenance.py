from datetime import datetime

from ..extensions import db


class Complaint(db.Model):
    __tablename__ = "complaints"
    __table_args__ = (
        db.Index("ix_complaints_org_status", "organization_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(20), nullable=False)  # maintenance, noise, security, cleanliness, other
    priority = db.Column(db.String(10), default="medium", nullable=False)  # low, medium, high, urgent
    status = db.Column(db.String(20), default="open", nullable=False)  # open, assigned, in_progress, resolved, closed
    type = db.Column(db.String(30), default="complaint", nullable=False)  # complaint, maintenance_request
    maintenance_category = db.Column(db.String(20), nullable=True)  # plumbing, electrical, hvac, appliance, structural, other
    urgency = db.Column(db.String(10), nullable=True)  # low, medium, high, emergency

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)
    photos = db.Column(db.JSON, nullable=True)
    linked_work_order_id = db.Column(db.Integer, db.ForeignKey("work_orders.id", use_alter=True), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Complaint {self.id}: {self.title} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "tenant_id": self.tenant_id,
            "unit_id": self.unit_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "type": self.type,
            "maintenance_category": self.maintenance_category,
            "urgency": self.urgency,
            "assigned_to": self.assigned_to,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution_notes": self.resolution_notes,
            "photos": self.photos or [],
            "linked_work_order_id": self.linked_work_order_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class WorkOrder(db.Model):
    __tablename__ = "work_orders"
    __table_args__ = (
        db.Index("ix_work_orders_org_status", "organization_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    building_id = db.Column(db.Integer, db.ForeignKey("buildings.id"), nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(20), nullable=False)  # plumbing, electrical, hvac, cleaning, security, other
    priority = db.Column(db.String(10), default="medium", nullable=False)  # low, medium, high, urgent
    status = db.Column(db.String(20), default="open", nullable=False)  # open, assigned, in_progress, completed, cancelled

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    estimated_cost = db.Column(db.Numeric(12, 2), nullable=True)
    actual_cost = db.Column(db.Numeric(12, 2), nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    photos = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<WorkOrder {self.id}: {self.title} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "building_id": self.building_id,
            "unit_id": self.unit_id,
            "complaint_id": self.complaint_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "created_by": self.created_by,
            "estimated_cost": float(self.estimated_cost) if self.estimated_cost is not None else None,
            "actual_cost": float(self.actual_cost) if self.actual_cost is not None else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "notes": self.notes,
            "photos": self.photos or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
