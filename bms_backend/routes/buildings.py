from flask import Blueprint, jsonify, request

from ..models import Building, Unit
from ..security import current_organization_id, require_permission
from ..services import properties as svc
from ..services.common import get_for_org
from ..utils.parsing import get_json, paginate

bp = Blueprint("buildings", __name__)


# ---------------- Buildings ----------------
@bp.get("/buildings")
@require_permission("buildings", "read", "list", "list_all")
def list_buildings():
    query = svc.list_buildings_query(
        current_organization_id(),
        status=request.args.get("status"),
        building_type=request.args.get("building_type"),
    )
    return jsonify(paginate(query, (Building.name, Building.id), "buildings")), 200


@bp.post("/buildings")
@require_permission("buildings", "create")
def create_building():
    data = get_json()
    building = svc.create_building(current_organization_id(data), data)
    return jsonify({"building": building.serialize()}), 201


@bp.get("/buildings/<int:building_id>")
@require_permission("buildings", "read", "read_all")
def get_building(building_id):
    building = get_for_org(Building, building_id, current_organization_id(), "Building")
    return jsonify({"building": building.serialize()}), 200


@bp.put("/buildings/<int:building_id>")
@require_permission("buildings", "update")
def update_building(building_id):
    data = get_json()
    building = get_for_org(Building, building_id, current_organization_id(data), "Building")
    return jsonify({"building": svc.update_building(building, data).serialize()}), 200


@bp.delete("/buildings/<int:building_id>")
@require_permission("buildings", "delete")
def delete_building(building_id):
    building = get_for_org(Building, building_id, current_organization_id(), "Building")
    svc.delete_building(building)
    return jsonify({"message": "Building deleted"}), 200


# ---------------- Units ----------------
@bp.get("/units")
@require_permission("units", "list", "list_all")
def list_units():
    query = svc.list_units_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        status=request.args.get("status"),
        unit_type=request.args.get("unit_type"),
    )
    return jsonify(paginate(query, (Unit.building_id, Unit.unit_number), "units")), 200


@bp.post("/units")
@require_permission("units", "create")
def create_unit():
    data = get_json()
    unit = svc.create_unit(current_organization_id(data), data)
    return jsonify({"unit": unit.serialize()}), 201


@bp.get("/units/<int:unit_id>")
@require_permission("units", "read", "read_all")
def get_unit(unit_id):
    unit = get_for_org(Unit, unit_id, current_organization_id(), "Unit")
    return jsonify({"unit": unit.serialize()}), 200


@bp.put("/units/<int:unit_id>")
@require_permission("units", "update")
def update_unit(unit_id):
    data = get_json()
    unit = get_for_org(Unit, unit_id, current_organization_id(data), "Unit")
    return jsonify({"unit": svc.update_unit(unit, data).serialize()}), 200


@bp.delete("/units/<int:unit_id>")
@require_permission("units", "delete")
def delete_unit(unit_id):
    unit = get_for_org(Unit, unit_id, current_organization_id(), "Unit")
    svc.delete_unit(unit)
    return jsonify({"message": "Unit deleted"}), 200
