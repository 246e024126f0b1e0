import logging
from datetime import datetime

from ..errors import ValidationError
from ..extensions import db
from ..models import Building, ParkingSpace, Tenant, Unit, VisitorLog
from ..utils.parsing import parse_datetime, to_int
from .common import resolve_reference

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("visitor_phone", "visitor_id_number", "vehicle_plate_number", "notes")


def create_visitor_log(organization_id, data, logged_by=None):
    visitor_name = (data.get("visitor_name") or "").strip()
    purpose = (data.get("purpose") or "").strip()
    if not visitor_name or not data.get("host_tenant_id") or not purpose:
        raise ValidationError("visitorName, hostTenantId, and purpose are required")

    building_id = to_int(data.get("building_id"), "building_id")
    resolve_reference(Building, building_id, organization_id, "Building")
    host_tenant_id = to_int(data["host_tenant_id"], "host_tenant_id")
    resolve_reference(Tenant, host_tenant_id, organization_id, "Tenant")
    host_unit_id = to_int(data.get("host_unit_id"), "host_unit_id", allow_none=True)
    if host_unit_id is not None:
        resolve_reference(Unit, host_unit_id, organization_id, "Unit")
    parking_space_id = to_int(data.get("parking_space_id"), "parking_space_id", allow_none=True)
    if parking_space_id is not None:
        resolve_reference(ParkingSpace, parking_space_id, organization_id, "Parking space")

    log = VisitorLog(
        organization_id=organization_id,
        building_id=building_id,
        visitor_name=visitor_name,
        host_tenant_id=host_tenant_id,
        host_unit_id=host_unit_id,
        purpose=purpose,
        parking_space_id=parking_space_id,
        entry_time=parse_datetime(data.get("entry_time"), "entry_time") or datetime.utcnow(),
        logged_by=logged_by,
    )
    for field in TEXT_FIELDS:
        if data.get(field):
            setattr(log, field, data[field])
    if log.vehicle_plate_number:
        log.vehicle_plate_number = log.vehicle_plate_number.strip().upper()
    db.session.add(log)
    db.session.commit()
    logger.info("Visitor entry logged: %s for tenant %s", log.id, host_tenant_id)
    return log


def log_visitor_exit(log, exit_time=None):
    if log.exit_time is not None:
        raise ValidationError("Visitor has already exited")
    exit_time = parse_datetime(exit_time, "exit_time") or datetime.utcnow()
    if exit_time < log.entry_time:
        raise ValidationError("Exit time cannot be before entry time")
    log.exit_time = exit_time
    db.session.commit()
    return log


def update_visitor_log(log, data):
    for field in TEXT_FIELDS:
        if field in data:
            setattr(log, field, data[field])
    if "visitor_name" in data:
        if not (data.get("visitor_name") or "").strip():
            raise ValidationError("visitorName cannot be empty")
        log.visitor_name = data["visitor_name"].strip()
    if "purpose" in data:
        if not (data.get("purpose") or "").strip():
            raise ValidationError("purpose cannot be empty")
        log.purpose = data["purpose"].strip()
    if "entry_time" in data:
        log.entry_time = parse_datetime(data["entry_time"], "entry_time") or log.entry_time
    if "exit_time" in data:
        log.exit_time = parse_datetime(data["exit_time"], "exit_time")
    if log.exit_time is not None and log.exit_time < log.entry_time:
        raise ValidationError("Exit time cannot be before entry time")
    db.session.commit()
    return log


def list_visitor_logs_query(organization_id, building_id=None, host_tenant_id=None, active=None,
                            start=None, end=None):
    query = VisitorLog.query.filter(VisitorLog.organization_id == organization_id)
    if building_id:
        query = query.filter(VisitorLog.building_id == building_id)
    if host_tenant_id:
        query = query.filter(VisitorLog.host_tenant_id == host_tenant_id)
    if active is True:
        query = query.filter(VisitorLog.exit_time.is_(None))
    elif active is False:
        query = query.filter(VisitorLog.exit_time.isnot(None))
    if start:
        query = query.filter(VisitorLog.entry_time >= start)
    if end:
        query = query.filter(VisitorLog.entry_time <= end)
    return query
