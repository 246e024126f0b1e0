import logging

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Building, Lease, Unit
from ..utils.parsing import to_decimal, to_int
from .common import resolve_reference, require_choice

logger = logging.getLogger(__name__)

BUILDING_TYPES = ("residential", "commercial", "mixed")
BUILDING_STATUSES = ("active", "under-construction", "inactive")
UNIT_TYPES = ("apartment", "office", "shop", "warehouse", "parking")
UNIT_STATUSES = ("available", "occupied", "maintenance", "reserved")


# ---------------- Buildings ----------------
def _apply_building(building, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Building name is required")
        building.name = name
    if "building_type" in data:
        building.building_type = require_choice(data["building_type"], BUILDING_TYPES, "building_type")
    if "status" in data:
        building.status = require_choice(data["status"], BUILDING_STATUSES, "status")
    for field in ("total_floors", "total_units", "manager_id"):
        if field in data:
            setattr(building, field, to_int(data[field], field, allow_none=True))
    for field in ("address", "settings"):
        if field in data:
            setattr(building, field, data[field])


def create_building(organization_id, data):
    if not (data.get("name") or "").strip():
        raise ValidationError("Building name is required")
    building = Building(organization_id=organization_id, building_type="residential", status="active")
    _apply_building(building, data)
    db.session.add(building)
    db.session.commit()
    logger.info("Building created: %s org=%s", building.id, organization_id)
    return building


def update_building(building, data):
    _apply_building(building, data)
    db.session.commit()
    return building


def delete_building(building):
    if Unit.query.filter_by(building_id=building.id).count() > 0:
        raise ConflictError("Cannot delete building with units")
    db.session.delete(building)
    db.session.commit()


def list_buildings_query(organization_id, status=None, building_type=None):
    query = Building.query.filter(Building.organization_id == organization_id)
    if status:
        query = query.filter(Building.status == status)
    if building_type:
        query = query.filter(Building.building_type == building_type)
    return query


# ---------------- Units ----------------
def _check_unit_number(building_id, unit_number, exclude_id=None):
    query = Unit.query.filter_by(building_id=building_id, unit_number=unit_number)
    if exclude_id is not None:
        query = query.filter(Unit.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f'Unit number "{unit_number}" already exists in this building')


def _apply_unit(unit, data):
    if "unit_type" in data:
        unit.unit_type = require_choice(data["unit_type"], UNIT_TYPES, "unit_type")
    if "status" in data:
        unit.status = require_choice(data["status"], UNIT_STATUSES, "status")
    for field in ("floor", "bedrooms", "bathrooms"):
        if field in data:
            setattr(unit, field, to_int(data[field], field, allow_none=True))
    for field in ("area", "rent_amount"):
        if field in data:
            value = to_decimal(data[field], field, allow_none=True)
            if value is not None and value < 0:
                raise ValidationError(f"{field} cannot be negative")
            setattr(unit, field, value)


def create_unit(organization_id, data):
    building_id = to_int(data.get("building_id"), "building_id")
    unit_number = (data.get("unit_number") or "").strip()
    if not unit_number:
        raise ValidationError("unit_number is required")
    resolve_reference(Building, building_id, organization_id, "Building")
    _check_unit_number(building_id, unit_number)

    unit = Unit(
        organization_id=organization_id,
        building_id=building_id,
        unit_number=unit_number,
        unit_type="apartment",
        status="available",
    )
    _apply_unit(unit, data)
    db.session.add(unit)
    db.session.commit()
    return unit


def update_unit(unit, data):
    if "building_id" in data and data["building_id"] != unit.building_id:
        resolve_reference(Building, to_int(data["building_id"], "building_id"), unit.organization_id, "Building")
        unit.building_id = data["building_id"]
    if "unit_number" in data:
        unit_number = (data.get("unit_number") or "").strip()
        if not unit_number:
            raise ValidationError("unit_number is required")
        _check_unit_number(unit.building_id, unit_number, exclude_id=unit.id)
        unit.unit_number = unit_number
    _apply_unit(unit, data)
    db.session.commit()
    return unit


def delete_unit(unit):
    if Lease.query.filter_by(unit_id=unit.id, status="active").count() > 0:
        raise ConflictError("Cannot delete unit with an active lease")
    db.session.delete(unit)
    db.session.commit()


def list_units_query(organization_id, building_id=None, status=None, unit_type=None):
    query = Unit.query.filter(Unit.organization_id == organization_id)
    if building_id:
        query = query.filter(Unit.building_id == building_id)
    if status:
        query = query.filter(Unit.status == status)
    if unit_type:
        query = query.filter(Unit.unit_type == unit_type)
    return query
