import logging
from datetime import datetime

from ..errors import ValidationError
from ..extensions import db
from ..models import Building, Complaint, Tenant, Unit, User, WorkOrder
from ..utils.parsing import to_decimal, to_int
from .common import require_choice, resolve_reference

logger = logging.getLogger(__name__)

COMPLAINT_CATEGORIES = ("maintenance", "noise", "security", "cleanliness", "other")
PRIORITIES = ("low", "medium", "high", "urgent")
COMPLAINT_STATUSES = ("open", "assigned", "in_progress", "resolved", "closed")
COMPLAINT_TYPES = ("complaint", "maintenance_request")
MAINTENANCE_CATEGORIES = ("plumbing", "electrical", "hvac", "appliance", "structural", "other")
URGENCIES = ("low", "medium", "high", "emergency")

WORK_ORDER_CATEGORIES = ("plumbing", "electrical", "hvac", "cleaning", "security", "other")
WORK_ORDER_STATUSES = ("open", "assigned", "in_progress", "completed", "cancelled")


def _resolve_assignee(user_id, organization_id):
    user_id = to_int(user_id, "assigned_to", allow_none=True)
    if user_id is not None:
        resolve_reference(User, user_id, organization_id, "Assigned user")
    return user_id


# ---------------- Complaints ----------------
def create_complaint(organization_id, data, tenant_id=None):
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    if not title or not description or not data.get("category"):
        raise ValidationError("title, description, and category are required")

    complaint = Complaint(
        organization_id=organization_id,
        title=title,
        description=description,
        category=require_choice(data["category"], COMPLAINT_CATEGORIES, "category"),
        priority=require_choice(data.get("priority") or "medium", PRIORITIES, "priority"),
        type=require_choice(data.get("type") or "complaint", COMPLAINT_TYPES, "type"),
        status="open",
        photos=data.get("photos"),
    )
    if data.get("maintenance_category"):
        complaint.maintenance_category = require_choice(
            data["maintenance_category"], MAINTENANCE_CATEGORIES, "maintenance_category"
        )
    if data.get("urgency"):
        complaint.urgency = require_choice(data["urgency"], URGENCIES, "urgency")

    tenant_id = tenant_id or to_int(data.get("tenant_id"), "tenant_id", allow_none=True)
    if tenant_id is not None:
        resolve_reference(Tenant, tenant_id, organization_id, "Tenant")
    complaint.tenant_id = tenant_id
    unit_id = to_int(data.get("unit_id"), "unit_id", allow_none=True)
    if unit_id is not None:
        resolve_reference(Unit, unit_id, organization_id, "Unit")
    complaint.unit_id = unit_id

    db.session.add(complaint)
    db.session.commit()
    logger.info("Complaint %s created (%s)", complaint.id, complaint.category)
    return complaint


def update_complaint_status(complaint, status=None, assigned_to=None, resolution_notes=None):
    if assigned_to is not None:
        complaint.assigned_to = assigned_to
        if complaint.status == "open" and status is None:
            status = "assigned"
    if status is not None:
        require_choice(status, COMPLAINT_STATUSES, "status")
        if status in ("resolved", "closed"):
            if complaint.resolved_at is None:
                complaint.resolved_at = datetime.utcnow()
        else:
            complaint.resolved_at = None
        complaint.status = status
    if resolution_notes is not None:
        complaint.resolution_notes = resolution_notes
    return complaint


def update_complaint(complaint, data):
    for field in ("title", "description"):
        if field in data:
            value = (data.get(field) or "").strip()
            if not value:
                raise ValidationError(f"{field} cannot be empty")
            setattr(complaint, field, value)
    if "category" in data:
        complaint.category = require_choice(data["category"], COMPLAINT_CATEGORIES, "category")
    if "priority" in data:
        complaint.priority = require_choice(data["priority"], PRIORITIES, "priority")
    if "urgency" in data:
        complaint.urgency = require_choice(data["urgency"], URGENCIES, "urgency") if data["urgency"] else None
    if "photos" in data:
        complaint.photos = data["photos"]

    assigned_to = None
    if data.get("assigned_to") is not None:
        assigned_to = _resolve_assignee(data["assigned_to"], complaint.organization_id)
    update_complaint_status(complaint, data.get("status"), assigned_to, data.get("resolution_notes"))
    db.session.commit()
    return complaint


def list_complaints_query(organization_id, status=None, tenant_id=None, category=None, complaint_type=None):
    query = Complaint.query.filter(Complaint.organization_id == organization_id)
    if status:
        query = query.filter(Complaint.status == status)
    if tenant_id:
        query = query.filter(Complaint.tenant_id == tenant_id)
    if category:
        query = query.filter(Complaint.category == category)
    if complaint_type:
        query = query.filter(Complaint.type == complaint_type)
    return query


def map_work_order_category(category, maintenance_category=None):
    if maintenance_category:
        return maintenance_category if maintenance_category in ("plumbing", "electrical", "hvac") else "other"
    return {"security": "security", "cleanliness": "cleaning"}.get(category, "other")


def map_work_order_priority(priority, urgency=None):
    if urgency:
        return "urgent" if urgency == "emergency" else urgency
    return priority


def convert_complaint_to_work_order(complaint, data, created_by):
    if complaint.linked_work_order_id:
        raise ValidationError("Complaint already has a linked work order")
    if complaint.status in ("closed", "resolved"):
        raise ValidationError("Cannot convert closed or resolved complaint to work order")
    if not complaint.unit_id:
        raise ValidationError("Complaint must be associated with a unit to create work order")
    unit = resolve_reference(Unit, complaint.unit_id, complaint.organization_id, "Unit")

    category = data.get("category") or map_work_order_category(complaint.category, complaint.maintenance_category)
    priority = data.get("priority") or map_work_order_priority(complaint.priority, complaint.urgency)
    work_order = WorkOrder(
        organization_id=complaint.organization_id,
        building_id=unit.building_id,
        unit_id=unit.id,
        complaint_id=complaint.id,
        title=complaint.title,
        description=complaint.description,
        category=require_choice(category, WORK_ORDER_CATEGORIES, "category"),
        priority=require_choice(priority, PRIORITIES, "priority"),
        status="open",
        created_by=created_by,
        photos=complaint.photos,
    )
    assigned_to = _resolve_assignee(data.get("assigned_to"), complaint.organization_id)
    if assigned_to is not None:
        work_order.assigned_to = assigned_to
        work_order.status = "assigned"
    db.session.add(work_order)
    db.session.flush()

    complaint.linked_work_order_id = work_order.id
    complaint.status = "in_progress"
    db.session.commit()
    logger.info("Complaint %s converted to work order %s", complaint.id, work_order.id)
    return work_order


# ---------------- Work orders ----------------
def create_work_order(organization_id, data, created_by):
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    if not title or not description or not data.get("category"):
        raise ValidationError("title, description, and category are required")

    building_id = to_int(data.get("building_id"), "building_id")
    resolve_reference(Building, building_id, organization_id, "Building")
    unit_id = to_int(data.get("unit_id"), "unit_id", allow_none=True)
    if unit_id is not None:
        resolve_reference(Unit, unit_id, organization_id, "Unit")
    complaint_id = to_int(data.get("complaint_id"), "complaint_id", allow_none=True)
    if complaint_id is not None:
        resolve_reference(Complaint, complaint_id, organization_id, "Complaint")

    work_order = WorkOrder(
        organization_id=organization_id,
        building_id=building_id,
        unit_id=unit_id,
        complaint_id=complaint_id,
        title=title,
        description=description,
        category=require_choice(data["category"], WORK_ORDER_CATEGORIES, "category"),
        priority=require_choice(data.get("priority") or "medium", PRIORITIES, "priority"),
        status="open",
        created_by=created_by,
        estimated_cost=to_decimal(data.get("estimated_cost"), "estimated_cost", allow_none=True),
        notes=data.get("notes"),
        photos=data.get("photos"),
    )
    assigned_to = _resolve_assignee(data.get("assigned_to"), organization_id)
    if assigned_to is not None:
        update_work_order_status(work_order, None, assigned_to)
    db.session.add(work_order)
    db.session.commit()
    logger.info("Work order %s created in building %s", work_order.id, building_id)
    return work_order


def update_work_order_status(work_order, status=None, assigned_to=None):
    if assigned_to is not None:
        work_order.assigned_to = assigned_to
        if work_order.status == "open" and status is None:
            status = "assigned"
    if status is not None:
        require_choice(status, WORK_ORDER_STATUSES, "status")
        now = datetime.utcnow()
        if status == "in_progress" and work_order.started_at is None:
            work_order.started_at = now
        if status == "completed":
            if work_order.completed_at is None:
                work_order.completed_at = now
        else:
            work_order.completed_at = None
        work_order.status = status
    return work_order


def update_work_order(work_order, data):
    for field in ("title", "description"):
        if field in data:
            value = (data.get(field) or "").strip()
            if not value:
                raise ValidationError(f"{field} cannot be empty")
            setattr(work_order, field, value)
    if "category" in data:
        work_order.category = require_choice(data["category"], WORK_ORDER_CATEGORIES, "category")
    if "priority" in data:
        work_order.priority = require_choice(data["priority"], PRIORITIES, "priority")
    for field in ("estimated_cost", "actual_cost"):
        if field in data:
            setattr(work_order, field, to_decimal(data[field], field, allow_none=True))
    for field in ("notes", "photos"):
        if field in data:
            setattr(work_order, field, data[field])

    assigned_to = None
    if data.get("assigned_to") is not None:
        assigned_to = _resolve_assignee(data["assigned_to"], work_order.organization_id)
    update_work_order_status(work_order, data.get("status"), assigned_to)
    db.session.commit()
    return work_order


def complete_work_order(work_order, data):
    if work_order.status in ("completed", "cancelled"):
        raise ValidationError(f"Work order is already {work_order.status}")
    if "actual_cost" in data:
        cost = to_decimal(data["actual_cost"], "actual_cost", allow_none=True)
        if cost is not None and cost < 0:
            raise ValidationError("actual_cost cannot be negative")
        work_order.actual_cost = cost
    if data.get("notes"):
        work_order.notes = data["notes"]
    if data.get("photos"):
        work_order.photos = list(work_order.photos or []) + list(data["photos"])
    work_order.completed_at = None
    update_work_order_status(work_order, "completed")
    db.session.commit()
    logger.info("Work order %s completed", work_order.id)
    return work_order


def list_work_orders_query(organization_id, building_id=None, status=None, priority=None, assigned_to=None):
    query = WorkOrder.query.filter(WorkOrder.organization_id == organization_id)
    if building_id:
        query = query.filter(WorkOrder.building_id == building_id)
    if status:
        query = query.filter(WorkOrder.status == status)
    if priority:
        query = query.filter(WorkOrder.priority == priority)
    if assigned_to:
        query = query.filter(WorkOrder.assigned_to == assigned_to)
    return query
