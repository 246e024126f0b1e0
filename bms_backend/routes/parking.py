from flask import Blueprint, jsonify, request

from ..models import ParkingAssignment, ParkingLog, ParkingPricing, ParkingSpace, ParkingViolation, Vehicle
from ..security import (
    current_context,
    current_organization_id,
    ensure_own,
    own_tenant_scope,
    require_any_permission,
    require_permission,
)
from ..services import parking as svc
from ..services.common import get_for_org
from ..utils.parsing import arg_bool, get_json, paginate, parse_datetime, to_bool

bp = Blueprint("parking", __name__)


# ---------------- Spaces ----------------
@bp.get("/parking/spaces")
@require_permission("parking", "read", "list", "list_all")
def list_spaces():
    query = svc.list_spaces_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        space_type=request.args.get("space_type"),
        status=request.args.get("status"),
    )
    return jsonify(paginate(query, (ParkingSpace.building_id, ParkingSpace.space_number), "spaces")), 200


@bp.post("/parking/spaces")
@require_permission("parking", "create")
def create_space():
    data = get_json()
    space = svc.create_parking_space(current_organization_id(data), data)
    return jsonify({"space": space.serialize()}), 201


@bp.get("/parking/spaces/<int:space_id>")
@require_permission("parking", "read", "read_all")
def get_space(space_id):
    space = get_for_org(ParkingSpace, space_id, current_organization_id(), "Parking space")
    return jsonify({"space": space.serialize()}), 200


@bp.put("/parking/spaces/<int:space_id>")
@require_permission("parking", "update")
def update_space(space_id):
    data = get_json()
    space = get_for_org(ParkingSpace, space_id, current_organization_id(data), "Parking space")
    return jsonify({"space": svc.update_parking_space(space, data).serialize()}), 200


@bp.delete("/parking/spaces/<int:space_id>")
@require_permission("parking", "delete")
def delete_space(space_id):
    space = get_for_org(ParkingSpace, space_id, current_organization_id(), "Parking space")
    svc.delete_parking_space(space)
    return jsonify({"message": "Parking space deleted"}), 200


# ---------------- Pricing ----------------
@bp.get("/parking/pricing")
@require_permission("parking", "read", "list", "list_all")
def list_pricing():
    query = svc.list_pricing_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        space_type=request.args.get("space_type"),
        is_active=arg_bool("is_active"),
    )
    return jsonify(paginate(query, (ParkingPricing.effective_from.desc(), ParkingPricing.id), "pricing")), 200


@bp.get("/parking/pricing/active")
@require_permission("parking", "read", "list", "list_all")
def active_pricing():
    building_id = request.args.get("building_id", type=int)
    space_type = request.args.get("space_type")
    if not building_id or not space_type:
        return jsonify({"error": "validation_error", "message": "building_id and space_type are required"}), 400
    pricing = svc.find_active_pricing(
        building_id, space_type, current_organization_id(), parse_datetime(request.args.get("at"), "at")
    )
    return jsonify({"pricing": pricing.serialize() if pricing else None}), 200


@bp.post("/parking/pricing")
@require_permission("parking", "create")
def create_pricing():
    data = get_json()
    pricing = svc.create_parking_pricing(current_organization_id(data), data)
    return jsonify({"pricing": pricing.serialize()}), 201


@bp.get("/parking/pricing/<int:pricing_id>")
@require_permission("parking", "read", "read_all")
def get_pricing(pricing_id):
    pricing = get_for_org(ParkingPricing, pricing_id, current_organization_id(), "Parking pricing")
    return jsonify({"pricing": pricing.serialize()}), 200


@bp.put("/parking/pricing/<int:pricing_id>")
@require_permission("parking", "update")
def update_pricing(pricing_id):
    data = get_json()
    pricing = get_for_org(ParkingPricing, pricing_id, current_organization_id(data), "Parking pricing")
    return jsonify({"pricing": svc.update_parking_pricing(pricing, data).serialize()}), 200


@bp.delete("/parking/pricing/<int:pricing_id>")
@require_permission("parking", "delete")
def deactivate_pricing(pricing_id):
    pricing = get_for_org(ParkingPricing, pricing_id, current_organization_id(), "Parking pricing")
    return jsonify({"pricing": svc.deactivate_parking_pricing(pricing).serialize()}), 200


# ---------------- Assignments ----------------
@bp.get("/parking/assignments")
@require_permission("parking", "read", "list", "list_all", "read_own")
def list_assignments():
    query = svc.list_assignments_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        status=request.args.get("status"),
        assignment_type=request.args.get("assignment_type"),
        tenant_id=own_tenant_scope("parking", request.args.get("tenant_id", type=int)),
    )
    order = (ParkingAssignment.start_date.desc(), ParkingAssignment.id.desc())
    return jsonify(paginate(query, order, "assignments")), 200


@bp.post("/parking/assignments")
@require_permission("parking", "assign")
def create_assignment():
    data = get_json()
    assignment = svc.create_parking_assignment(current_organization_id(data), data)
    return jsonify({"assignment": assignment.serialize()}), 201


@bp.get("/parking/assignments/<int:assignment_id>")
@require_permission("parking", "read", "read_all", "read_own")
def get_assignment(assignment_id):
    assignment = get_for_org(ParkingAssignment, assignment_id, current_organization_id(), "Parking assignment")
    ensure_own("parking", assignment, "Parking assignment")
    return jsonify({"assignment": assignment.serialize()}), 200


@bp.post("/parking/assignments/<int:assignment_id>/end")
@require_permission("parking", "assign", "update")
def end_assignment(assignment_id):
    data = get_json()
    assignment = get_for_org(ParkingAssignment, assignment_id, current_organization_id(data), "Parking assignment")
    result = svc.end_parking_assignment(
        assignment,
        data.get("end_date"),
        data.get("actual_end_time"),
        generate_invoice=to_bool(data.get("generate_invoice"), "generate_invoice", default=True),
    )
    return jsonify(result), 200


@bp.post("/parking/assignments/<int:assignment_id>/cancel")
@require_permission("parking", "assign", "update")
def cancel_assignment(assignment_id):
    data = get_json()
    assignment = get_for_org(ParkingAssignment, assignment_id, current_organization_id(data), "Parking assignment")
    return jsonify({"assignment": svc.cancel_parking_assignment(assignment).serialize()}), 200


# ---------------- Vehicles ----------------
@bp.get("/parking/vehicles")
@require_permission("parking", "read", "list", "list_all", "read_own")
def list_vehicles():
    query = svc.list_vehicles_query(
        current_organization_id(),
        tenant_id=own_tenant_scope("parking", request.args.get("tenant_id", type=int)),
        status=request.args.get("status"),
        search=(request.args.get("search") or "").strip() or None,
    )
    return jsonify(paginate(query, (Vehicle.plate_number,), "vehicles")), 200


@bp.post("/parking/vehicles")
@require_permission("parking", "create", "update")
def create_vehicle():
    data = get_json()
    vehicle = svc.create_vehicle(current_organization_id(data), data)
    return jsonify({"vehicle": vehicle.serialize()}), 201


@bp.get("/parking/vehicles/<int:vehicle_id>")
@require_permission("parking", "read", "read_all", "read_own")
def get_vehicle(vehicle_id):
    vehicle = get_for_org(Vehicle, vehicle_id, current_organization_id(), "Vehicle")
    ensure_own("parking", vehicle, "Vehicle")
    return jsonify({"vehicle": vehicle.serialize()}), 200


@bp.put("/parking/vehicles/<int:vehicle_id>")
@require_permission("parking", "update")
def update_vehicle(vehicle_id):
    data = get_json()
    vehicle = get_for_org(Vehicle, vehicle_id, current_organization_id(data), "Vehicle")
    return jsonify({"vehicle": svc.update_vehicle(vehicle, data).serialize()}), 200


@bp.delete("/parking/vehicles/<int:vehicle_id>")
@require_permission("parking", "delete")
def delete_vehicle(vehicle_id):
    vehicle = get_for_org(Vehicle, vehicle_id, current_organization_id(), "Vehicle")
    return jsonify({"vehicle": svc.delete_vehicle(vehicle).serialize()}), 200


# ---------------- Logs ----------------
@bp.get("/parking/logs")
@require_permission("parking", "read", "list", "list_all")
def list_logs():
    query = svc.list_logs_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        vehicle_id=request.args.get("vehicle_id", type=int),
        parking_space_id=request.args.get("parking_space_id", type=int),
        log_type=request.args.get("log_type"),
        start=parse_datetime(request.args.get("start"), "start"),
        end=parse_datetime(request.args.get("end"), "end"),
    )
    return jsonify(paginate(query, (ParkingLog.timestamp.desc(), ParkingLog.id.desc()), "logs")), 200


@bp.post("/parking/logs")
@require_permission("parking", "update")
def create_log():
    data = get_json()
    log = svc.create_parking_log(current_organization_id(data), data, logged_by=current_context().user_id)
    return jsonify({"log": log.serialize()}), 201


# ---------------- Violations ----------------
@bp.get("/parking/violations")
@require_permission("parking", "read", "list", "list_all", "read_own")
def list_violations():
    query = svc.list_violations_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        status=request.args.get("status"),
        severity=request.args.get("severity"),
        violation_type=request.args.get("violation_type"),
        tenant_id=own_tenant_scope("parking", request.args.get("tenant_id", type=int)),
    )
    order = (ParkingViolation.reported_at.desc(), ParkingViolation.id.desc())
    return jsonify(paginate(query, order, "violations")), 200


@bp.post("/parking/violations")
@require_any_permission(("security", "create"), ("parking", "update"))
def create_violation():
    data = get_json()
    violation = svc.create_violation(current_organization_id(data), data, reported_by=current_context().user_id)
    return jsonify({"violation": violation.serialize()}), 201


@bp.get("/parking/violations/<int:violation_id>")
@require_permission("parking", "read", "read_all", "read_own")
def get_violation(violation_id):
    violation = get_for_org(ParkingViolation, violation_id, current_organization_id(), "Parking violation")
    ensure_own("parking", violation, "Parking violation")
    return jsonify({"violation": violation.serialize()}), 200


@bp.put("/parking/violations/<int:violation_id>")
@require_permission("parking", "update")
def update_violation(violation_id):
    data = get_json()
    violation = get_for_org(ParkingViolation, violation_id, current_organization_id(data), "Parking violation")
    violation = svc.update_violation(violation, data, current_context().user_id)
    return jsonify({"violation": violation.serialize()}), 200


@bp.delete("/parking/violations/<int:violation_id>")
@require_permission("parking", "delete")
def delete_violation(violation_id):
    violation = get_for_org(ParkingViolation, violation_id, current_organization_id(), "Parking violation")
    svc.delete_violation(violation)
    return jsonify({"message": "Parking violation deleted"}), 200
