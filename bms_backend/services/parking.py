import logging
import math
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Building,
    Invoice,
    ParkingAssignment,
    ParkingLog,
    ParkingPricing,
    ParkingSpace,
    ParkingViolation,
    Tenant,
    Vehicle,
    VisitorLog,
)
from ..utils.parsing import parse_datetime, to_bool, to_decimal, to_int
from .common import require_choice, resolve_reference
from .invoice_generation import calculate_due_date
from .invoices import calculate_invoice_totals, generate_invoice_number
from .leases import find_active_lease_for_tenant

logger = logging.getLogger(__name__)

SPACE_TYPES = ("tenant", "visitor", "reserved")
SPACE_STATUSES = ("available", "occupied", "reserved", "maintenance")
PRICING_SPACE_TYPES = ("tenant", "visitor")
PRICING_MODELS = ("monthly", "daily", "hourly")
ASSIGNMENT_TYPES = ("tenant", "visitor")
ASSIGNMENT_STATUSES = ("active", "completed", "cancelled")
VEHICLE_STATUSES = ("active", "inactive")
LOG_TYPES = ("entry", "exit")
VIOLATION_TYPES = ("unauthorized_parking", "expired_permit", "wrong_space", "overtime_parking", "no_permit")
SEVERITIES = ("warning", "fine", "tow")
VIOLATION_STATUSES = ("reported", "resolved", "appealed")

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


# ---------------- Spaces ----------------
def _check_space_number(building_id, space_number, exclude_id=None):
    query = ParkingSpace.query.filter_by(building_id=building_id, space_number=space_number)
    if exclude_id is not None:
        query = query.filter(ParkingSpace.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Parking space number already exists in this building")


def create_parking_space(organization_id, data):
    building_id = to_int(data.get("building_id"), "building_id")
    resolve_reference(Building, building_id, organization_id, "Building")
    space_number = (data.get("space_number") or "").strip()
    if not space_number:
        raise ValidationError("space_number is required")
    space_type = require_choice(data.get("space_type"), SPACE_TYPES, "space_type")
    status = require_choice(data.get("status") or "available", SPACE_STATUSES, "status")
    assigned_to = to_int(data.get("assigned_to"), "assigned_to", allow_none=True)
    if assigned_to is not None:
        resolve_reference(Tenant, assigned_to, organization_id, "Tenant")
    _check_space_number(building_id, space_number)

    space = ParkingSpace(
        organization_id=organization_id,
        building_id=building_id,
        space_number=space_number,
        space_type=space_type,
        status=status,
        assigned_to=assigned_to,
        vehicle_id=to_int(data.get("vehicle_id"), "vehicle_id", allow_none=True),
        notes=data.get("notes"),
    )
    db.session.add(space)
    db.session.commit()
    return space


def update_parking_space(space, data):
    if "space_number" in data:
        space_number = (data.get("space_number") or "").strip()
        if not space_number:
            raise ValidationError("space_number is required")
        _check_space_number(space.building_id, space_number, exclude_id=space.id)
        space.space_number = space_number
    if "space_type" in data:
        space.space_type = require_choice(data["space_type"], SPACE_TYPES, "space_type")
    if "status" in data:
        space.status = require_choice(data["status"], SPACE_STATUSES, "status")
    if "assigned_to" in data:
        assigned_to = to_int(data["assigned_to"], "assigned_to", allow_none=True)
        if assigned_to is not None:
            resolve_reference(Tenant, assigned_to, space.organization_id, "Tenant")
        space.assigned_to = assigned_to
    if "vehicle_id" in data:
        vehicle_id = to_int(data["vehicle_id"], "vehicle_id", allow_none=True)
        if vehicle_id is not None:
            resolve_reference(Vehicle, vehicle_id, space.organization_id, "Vehicle")
        space.vehicle_id = vehicle_id
    if "notes" in data:
        space.notes = data["notes"]
    db.session.commit()
    return space


def delete_parking_space(space):
    if ParkingAssignment.query.filter_by(parking_space_id=space.id, status="active").first():
        raise ConflictError("Cannot delete parking space with an active assignment")
    db.session.delete(space)
    db.session.commit()


def list_spaces_query(organization_id, building_id=None, space_type=None, status=None):
    query = ParkingSpace.query.filter(ParkingSpace.organization_id == organization_id)
    if building_id:
        query = query.filter(ParkingSpace.building_id == building_id)
    if space_type:
        query = query.filter(ParkingSpace.space_type == space_type)
    if status:
        query = query.filter(ParkingSpace.status == status)
    return query


# ---------------- Pricing ----------------
REQUIRED_RATES = {
    ("tenant", "monthly"): ("monthly_rate", "Monthly rate is required for tenant monthly parking"),
    ("visitor", "daily"): ("daily_rate", "Daily rate is required for visitor daily parking"),
    ("visitor", "hourly"): ("hourly_rate", "Hourly rate is required for visitor hourly parking"),
}


def _validate_pricing(pricing):
    required = REQUIRED_RATES.get((pricing.space_type, pricing.pricing_model))
    if required and getattr(pricing, required[0]) is None:
        raise ValidationError(required[1])
    for field in ("monthly_rate", "daily_rate", "hourly_rate"):
        value = getattr(pricing, field)
        if value is not None and value < 0:
            raise ValidationError(f"{field} cannot be negative")
    if pricing.effective_from is None:
        raise ValidationError("effective_from is required")
    if pricing.effective_to is not None and pricing.effective_to < pricing.effective_from:
        raise ValidationError("effective_to must be after effective_from")


def _apply_pricing(pricing, data):
    if "space_type" in data:
        pricing.space_type = require_choice(data["space_type"], PRICING_SPACE_TYPES, "space_type")
    if "pricing_model" in data:
        pricing.pricing_model = require_choice(data["pricing_model"], PRICING_MODELS, "pricing_model")
    for field in ("monthly_rate", "daily_rate", "hourly_rate"):
        if field in data:
            setattr(pricing, field, to_decimal(data[field], field, allow_none=True))
    for field in ("effective_from", "effective_to"):
        if field in data:
            setattr(pricing, field, parse_datetime(data[field], field))
    if "currency" in data:
        pricing.currency = data["currency"] or "ETB"
    if "is_active" in data:
        pricing.is_active = to_bool(data["is_active"], "is_active", default=True)


def create_parking_pricing(organization_id, data):
    building_id = to_int(data.get("building_id"), "building_id")
    resolve_reference(Building, building_id, organization_id, "Building")
    require_choice(data.get("space_type"), PRICING_SPACE_TYPES, "space_type")
    require_choice(data.get("pricing_model"), PRICING_MODELS, "pricing_model")

    pricing = ParkingPricing(organization_id=organization_id, building_id=building_id, currency="ETB", is_active=True)
    _apply_pricing(pricing, data)
    _validate_pricing(pricing)
    db.session.add(pricing)
    db.session.commit()
    return pricing


def update_parking_pricing(pricing, data):
    _apply_pricing(pricing, data)
    _validate_pricing(pricing)
    db.session.commit()
    return pricing


def deactivate_parking_pricing(pricing):
    pricing.is_active = False
    db.session.commit()
    return pricing


def find_active_pricing(building_id, space_type, organization_id, at=None):
    at = at or datetime.utcnow()
    return (
        ParkingPricing.query.filter(
            ParkingPricing.organization_id == organization_id,
            ParkingPricing.building_id == building_id,
            ParkingPricing.space_type == space_type,
            ParkingPricing.is_active.is_(True),
            ParkingPricing.effective_from <= at,
            or_(ParkingPricing.effective_to.is_(None), ParkingPricing.effective_to >= at),
        )
        .order_by(ParkingPricing.effective_from.desc())
        .first()
    )


def list_pricing_query(organization_id, building_id=None, space_type=None, is_active=None):
    query = ParkingPricing.query.filter(ParkingPricing.organization_id == organization_id)
    if building_id:
        query = query.filter(ParkingPricing.building_id == building_id)
    if space_type:
        query = query.filter(ParkingPricing.space_type == space_type)
    if is_active is not None:
        query = query.filter(ParkingPricing.is_active.is_(is_active))
    return query


# ---------------- Assignments ----------------
def calculate_parking_charge(billing_period, rate, start, end):
    """Returns (calculated_duration, billed_duration, amount); durations in minutes."""
    rate = Decimal(str(rate))
    duration_ms = (end - start).total_seconds() * 1000
    calculated = int(math.floor(duration_ms / MS_PER_MINUTE + 0.5))
    billed, amount = calculated, Decimal("0")
    if billing_period == "monthly":
        amount = rate
    elif billing_period == "daily":
        days = math.ceil(duration_ms / MS_PER_DAY)
        amount = rate * days
        billed = days * 24 * 60
    elif billing_period == "hourly":
        hours = math.ceil(duration_ms / MS_PER_HOUR)
        amount = rate * hours
        billed = hours * 60
    return calculated, billed, amount


def _log(assignment, log_type, timestamp, duration=None):
    log = ParkingLog(
        organization_id=assignment.organization_id,
        building_id=assignment.building_id,
        vehicle_id=assignment.vehicle_id,
        parking_space_id=assignment.parking_space_id,
        log_type=log_type,
        timestamp=timestamp,
        logged_by="system",
        assignment_id=assignment.id,
        duration=duration,
    )
    db.session.add(log)
    return log


def create_parking_assignment(organization_id, data):
    space = resolve_reference(
        ParkingSpace, to_int(data.get("parking_space_id"), "parking_space_id"), organization_id, "Parking space"
    )
    assignment_type = require_choice(data.get("assignment_type"), ASSIGNMENT_TYPES, "assignment_type")
    tenant_id = to_int(data.get("tenant_id"), "tenant_id", allow_none=True)
    visitor_log_id = to_int(data.get("visitor_log_id"), "visitor_log_id", allow_none=True)
    if assignment_type == "tenant":
        if tenant_id is None:
            raise ValidationError("Tenant ID is required for tenant assignments")
        resolve_reference(Tenant, tenant_id, organization_id, "Tenant")
    else:
        if visitor_log_id is None:
            raise ValidationError("Visitor log ID is required for visitor assignments")
        resolve_reference(VisitorLog, visitor_log_id, organization_id, "Visitor log")
    vehicle_id = to_int(data.get("vehicle_id"), "vehicle_id", allow_none=True)
    if vehicle_id is not None:
        resolve_reference(Vehicle, vehicle_id, organization_id, "Vehicle")

    if ParkingAssignment.query.filter_by(parking_space_id=space.id, status="active").first():
        raise ConflictError("Parking space is already assigned")

    now = datetime.utcnow()
    start_date = parse_datetime(data.get("start_date"), "start_date") or now
    pricing_id = to_int(data.get("pricing_id"), "pricing_id", allow_none=True)
    billing_period = data.get("billing_period")
    rate = to_decimal(data.get("rate"), "rate", allow_none=True)

    if pricing_id is None or not billing_period or rate is None:
        pricing = find_active_pricing(space.building_id, space.space_type, organization_id, start_date)
        if pricing is None:
            raise ValidationError(f"No active pricing found for {space.space_type} parking in this building")
        pricing_id = pricing.id
        billing_period = billing_period or pricing.pricing_model
        if rate is None:
            rate = pricing.rate_for(billing_period) or Decimal("0")
    require_choice(billing_period, PRICING_MODELS, "billing_period")
    if rate < 0:
        raise ValidationError("rate cannot be negative")

    assignment = ParkingAssignment(
        organization_id=organization_id,
        parking_space_id=space.id,
        building_id=space.building_id,
        assignment_type=assignment_type,
        tenant_id=tenant_id,
        visitor_log_id=visitor_log_id,
        vehicle_id=vehicle_id,
        start_date=start_date,
        end_date=parse_datetime(data.get("end_date"), "end_date"),
        actual_start_time=parse_datetime(data.get("actual_start_time"), "actual_start_time") or now,
        pricing_id=pricing_id,
        billing_period=billing_period,
        rate=rate,
        status="active",
    )
    db.session.add(assignment)
    space.status = "occupied"
    db.session.flush()
    if vehicle_id is not None:
        _log(assignment, "entry", assignment.actual_start_time)
    db.session.commit()
    logger.info("Parking assignment %s created for space %s", assignment.id, space.space_number)
    return assignment


def create_parking_invoice(assignment, amount):
    """Draft invoice for a finished hourly/daily stay, billed to the tenant (or the visitor's host)."""
    tenant_id = assignment.tenant_id
    if tenant_id is None and assignment.visitor_log_id is not None:
        visit = db.session.get(VisitorLog, assignment.visitor_log_id)
        tenant_id = visit.host_tenant_id if visit is not None else None
    lease = find_active_lease_for_tenant(tenant_id, assignment.organization_id) if tenant_id else None
    if lease is None:
        raise ValidationError("Tenant does not have an active lease for parking billing")

    issue_date = date.today()
    items = [{
        "description": f"Parking fee - {assignment.billing_period} ({assignment.assignment_type})",
        "amount": float(amount),
        "type": "charge",
    }]
    invoice = Invoice(
        organization_id=assignment.organization_id,
        lease_id=lease.id,
        tenant_id=tenant_id,
        unit_id=lease.unit_id,
        invoice_number=generate_invoice_number(assignment.organization_id, issue_date.year),
        issue_date=issue_date,
        due_date=calculate_due_date(issue_date, lease.due_day),
        period_start=assignment.start_date.date(),
        period_end=(assignment.end_date or datetime.utcnow()).date(),
        items=items,
        status="draft",
        invoice_type="other",
        notes=f"Parking assignment {assignment.id}",
        **calculate_invoice_totals(items),
    )
    db.session.add(invoice)
    db.session.flush()
    return invoice


def end_parking_assignment(assignment, end_date=None, actual_end_time=None, generate_invoice=True):
    if assignment is None:
        raise NotFoundError("Parking assignment not found")
    if assignment.status != "active":
        raise ValidationError("Only active assignments can be ended")

    end_date = parse_datetime(end_date, "end_date") or datetime.utcnow()
    actual_end_time = parse_datetime(actual_end_time, "actual_end_time") or end_date
    start = assignment.actual_start_time or assignment.start_date
    calculated, billed, amount = calculate_parking_charge(
        assignment.billing_period, assignment.rate, start, actual_end_time
    )

    assignment.end_date = end_date
    assignment.actual_end_time = actual_end_time
    assignment.calculated_duration = calculated
    assignment.billed_duration = billed
    assignment.calculated_amount = amount
    assignment.status = "completed"
    if assignment.parking_space is not None:
        assignment.parking_space.status = "available"
    if assignment.vehicle_id is not None:
        _log(assignment, "exit", actual_end_time, duration=calculated)

    invoice_generated = False
    billable = assignment.assignment_type == "visitor" or assignment.billing_period != "monthly"
    if generate_invoice and assignment.invoice_id is None and amount > 0 and billable:
        try:
            assignment.invoice_id = create_parking_invoice(assignment, amount).id
            invoice_generated = True
        except ValidationError as e:
            logger.warning("Parking invoice not generated for assignment %s: %s", assignment.id, e.message)
    db.session.commit()
    logger.info("Parking assignment %s ended: %s min, amount %s", assignment.id, calculated, amount)
    return {
        "assignment": assignment.serialize(),
        "calculated_amount": float(amount),
        "invoice_generated": invoice_generated,
    }


def cancel_parking_assignment(assignment):
    if assignment.status != "active":
        raise ValidationError("Only active assignments can be cancelled")
    assignment.status = "cancelled"
    if assignment.parking_space is not None:
        assignment.parking_space.status = "available"
    db.session.commit()
    return assignment


def list_assignments_query(organization_id, building_id=None, status=None, assignment_type=None, tenant_id=None):
    query = ParkingAssignment.query.filter(ParkingAssignment.organization_id == organization_id)
    if building_id:
        query = query.filter(ParkingAssignment.building_id == building_id)
    if status:
        query = query.filter(ParkingAssignment.status == status)
    if assignment_type:
        query = query.filter(ParkingAssignment.assignment_type == assignment_type)
    if tenant_id:
        query = query.filter(ParkingAssignment.tenant_id == tenant_id)
    return query


# ---------------- Vehicles & logs ----------------
def _normalize_plate(plate):
    plate = (plate or "").strip().upper()
    if not plate:
        raise ValidationError("plate_number is required")
    return plate


def _check_plate(organization_id, plate, exclude_id=None):
    query = Vehicle.query.filter_by(organization_id=organization_id, plate_number=plate)
    if exclude_id is not None:
        query = query.filter(Vehicle.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Plate number already exists in this organization")


def _apply_vehicle(vehicle, data):
    organization_id = vehicle.organization_id
    for field in ("make", "model", "color", "notes"):
        if field in data:
            setattr(vehicle, field, data[field])
    if "tenant_id" in data:
        tenant_id = to_int(data["tenant_id"], "tenant_id", allow_none=True)
        if tenant_id is not None:
            resolve_reference(Tenant, tenant_id, organization_id, "Tenant")
        vehicle.tenant_id = tenant_id
    if "parking_space_id" in data:
        space_id = to_int(data["parking_space_id"], "parking_space_id", allow_none=True)
        if space_id is not None:
            resolve_reference(ParkingSpace, space_id, organization_id, "Parking space")
        vehicle.parking_space_id = space_id
    if "visitor_log_id" in data:
        log_id = to_int(data["visitor_log_id"], "visitor_log_id", allow_none=True)
        if log_id is not None:
            resolve_reference(VisitorLog, log_id, organization_id, "Visitor log")
        vehicle.visitor_log_id = log_id
    if "status" in data:
        vehicle.status = require_choice(data["status"], VEHICLE_STATUSES, "status")
    if "is_temporary" in data:
        vehicle.is_temporary = to_bool(data["is_temporary"], "is_temporary")
    if "expires_at" in data:
        vehicle.expires_at = parse_datetime(data["expires_at"], "expires_at")


def create_vehicle(organization_id, data):
    plate = _normalize_plate(data.get("plate_number"))
    _check_plate(organization_id, plate)
    vehicle = Vehicle(organization_id=organization_id, plate_number=plate, status="active", is_temporary=False)
    _apply_vehicle(vehicle, data)
    db.session.add(vehicle)
    db.session.commit()
    return vehicle


def update_vehicle(vehicle, data):
    if "plate_number" in data:
        plate = _normalize_plate(data["plate_number"])
        _check_plate(vehicle.organization_id, plate, exclude_id=vehicle.id)
        vehicle.plate_number = plate
    _apply_vehicle(vehicle, data)
    db.session.commit()
    return vehicle


def delete_vehicle(vehicle):
    if ParkingAssignment.query.filter_by(vehicle_id=vehicle.id, status="active").first():
        raise ConflictError("Cannot delete vehicle with an active parking assignment")
    vehicle.status = "inactive"
    db.session.commit()
    return vehicle


def list_vehicles_query(organization_id, tenant_id=None, status=None, search=None):
    query = Vehicle.query.filter(Vehicle.organization_id == organization_id)
    if tenant_id:
        query = query.filter(Vehicle.tenant_id == tenant_id)
    if status:
        query = query.filter(Vehicle.status == status)
    if search:
        query = query.filter(Vehicle.plate_number.ilike(f"%{search.upper()}%"))
    return query


def create_parking_log(organization_id, data, logged_by=None):
    vehicle = resolve_reference(Vehicle, to_int(data.get("vehicle_id"), "vehicle_id"), organization_id, "Vehicle")
    space = resolve_reference(
        ParkingSpace, to_int(data.get("parking_space_id"), "parking_space_id"), organization_id, "Parking space"
    )
    log_type = require_choice(data.get("log_type"), LOG_TYPES, "log_type")
    assignment_id = to_int(data.get("assignment_id"), "assignment_id", allow_none=True)
    if assignment_id is not None:
        resolve_reference(ParkingAssignment, assignment_id, organization_id, "Parking assignment")

    log = ParkingLog(
        organization_id=organization_id,
        building_id=space.building_id,
        vehicle_id=vehicle.id,
        parking_space_id=space.id,
        log_type=log_type,
        timestamp=parse_datetime(data.get("timestamp"), "timestamp") or datetime.utcnow(),
        logged_by=str(logged_by) if logged_by is not None else "system",
        assignment_id=assignment_id,
        duration=to_int(data.get("duration"), "duration", allow_none=True),
        notes=data.get("notes"),
    )
    db.session.add(log)
    db.session.commit()
    return log


def list_logs_query(organization_id, building_id=None, vehicle_id=None, parking_space_id=None, log_type=None,
                    start=None, end=None):
    query = ParkingLog.query.filter(ParkingLog.organization_id == organization_id)
    if building_id:
        query = query.filter(ParkingLog.building_id == building_id)
    if vehicle_id:
        query = query.filter(ParkingLog.vehicle_id == vehicle_id)
    if parking_space_id:
        query = query.filter(ParkingLog.parking_space_id == parking_space_id)
    if log_type:
        query = query.filter(ParkingLog.log_type == log_type)
    if start:
        query = query.filter(ParkingLog.timestamp >= start)
    if end:
        query = query.filter(ParkingLog.timestamp <= end)
    return query


# ---------------- Violations ----------------
def _violation_refs(organization_id, data):
    refs = (
        ("parking_space_id", ParkingSpace, "Parking space"),
        ("vehicle_id", Vehicle, "Vehicle"),
        ("tenant_id", Tenant, "Tenant"),
    )
    values = {}
    for field, model, label in refs:
        if field in data:
            value = to_int(data[field], field, allow_none=True)
            if value is not None:
                resolve_reference(model, value, organization_id, label)
            values[field] = value
    return values


def _fine_amount(data):
    fine = to_decimal(data.get("fine_amount"), "fine_amount", allow_none=True)
    if fine is not None and fine < 0:
        raise ValidationError("fine_amount cannot be negative")
    return fine


def create_violation(organization_id, data, reported_by):
    building_id = to_int(data.get("building_id"), "building_id")
    resolve_reference(Building, building_id, organization_id, "Building")
    if not data.get("violation_type") or not data.get("severity"):
        raise ValidationError("violationType and severity are required")
    violation_type = require_choice(data["violation_type"], VIOLATION_TYPES, "violation_type")
    severity = require_choice(data["severity"], SEVERITIES, "severity")

    violation = ParkingViolation(
        organization_id=organization_id,
        building_id=building_id,
        violation_type=violation_type,
        severity=severity,
        status="reported",
        fine_amount=_fine_amount(data),
        reported_by=reported_by,
        reported_at=datetime.utcnow(),
        photos=data.get("photos"),
        notes=data.get("notes"),
        **_violation_refs(organization_id, data),
    )
    db.session.add(violation)
    db.session.commit()
    logger.info("Parking violation %s reported (%s/%s)", violation.id, violation_type, severity)
    return violation


def update_violation(violation, data, user_id):
    for field, value in _violation_refs(violation.organization_id, data).items():
        setattr(violation, field, value)
    if "violation_type" in data:
        violation.violation_type = require_choice(data["violation_type"], VIOLATION_TYPES, "violation_type")
    if "severity" in data:
        violation.severity = require_choice(data["severity"], SEVERITIES, "severity")
    if "fine_amount" in data:
        violation.fine_amount = _fine_amount(data)
    for field in ("notes", "photos"):
        if field in data:
            setattr(violation, field, data[field])

    if "status" in data and data["status"] != violation.status:
        status = require_choice(data["status"], VIOLATION_STATUSES, "status")
        if status == "resolved":
            violation.resolved_by = user_id
            violation.resolved_at = datetime.utcnow()
            violation.resolution_notes = data.get("resolution_notes")
        elif violation.status == "resolved":
            violation.resolved_by = None
            violation.resolved_at = None
            violation.resolution_notes = None
        violation.status = status
    elif "resolution_notes" in data:
        violation.resolution_notes = data["resolution_notes"]
    db.session.commit()
    return violation


def delete_violation(violation):
    db.session.delete(violation)
    db.session.commit()


def list_violations_query(organization_id, building_id=None, status=None, severity=None, violation_type=None,
                          tenant_id=None):
    query = ParkingViolation.query.filter(ParkingViolation.organization_id == organization_id)
    if building_id:
        query = query.filter(ParkingViolation.building_id == building_id)
    if status:
        query = query.filter(ParkingViolation.status == status)
    if severity:
        query = query.filter(ParkingViolation.severity == severity)
    if violation_type:
        query = query.filter(ParkingViolation.violation_type == violation_type)
    if tenant_id:
        query = query.filter(ParkingViolation.tenant_id == tenant_id)
    return query
