from flask import Blueprint, jsonify, request

from ..models import Complaint, WorkOrder
from ..security import (
    current_context,
    current_organization_id,
    ensure_own,
    own_tenant_scope,
    require_any_permission,
    require_permission,
)
from ..services import maintenance as svc
from ..services.common import get_for_org
from ..utils.parsing import arg_bool, get_json, paginate

bp = Blueprint("maintenance", __name__)

OWN_COMPLAINT_FIELDS = ("title", "description", "photos", "urgency")


# ---------------- Complaints ----------------
@bp.get("/complaints")
@require_permission("complaints", "list", "list_all", "list_own")
def list_complaints():
    query = svc.list_complaints_query(
        current_organization_id(),
        status=request.args.get("status"),
        tenant_id=own_tenant_scope("complaints", request.args.get("tenant_id", type=int)),
        category=request.args.get("category"),
        complaint_type=request.args.get("type"),
    )
    return jsonify(paginate(query, (Complaint.created_at.desc(), Complaint.id.desc()), "complaints")), 200


@bp.post("/complaints")
@require_permission("complaints", "create")
def create_complaint():
    ctx = current_context()
    data = get_json()
    tenant_id = own_tenant_scope("complaints") if ctx.only_own("complaints") else None
    complaint = svc.create_complaint(current_organization_id(data), data, tenant_id=tenant_id)
    return jsonify({"complaint": complaint.serialize()}), 201


@bp.get("/complaints/<int:complaint_id>")
@require_permission("complaints", "read", "read_all", "read_own")
def get_complaint(complaint_id):
    complaint = get_for_org(Complaint, complaint_id, current_organization_id(), "Complaint")
    ensure_own("complaints", complaint, "Complaint")
    return jsonify({"complaint": complaint.serialize()}), 200


@bp.put("/complaints/<int:complaint_id>")
@require_permission("complaints", "update", "update_own")
def update_complaint(complaint_id):
    ctx = current_context()
    data = get_json()
    complaint = get_for_org(Complaint, complaint_id, current_organization_id(data), "Complaint")
    if not ctx.can("complaints", "update"):
        ensure_own("complaints", complaint, "Complaint")
        data = {k: v for k, v in data.items() if k in OWN_COMPLAINT_FIELDS}
    return jsonify({"complaint": svc.update_complaint(complaint, data).serialize()}), 200


@bp.post("/complaints/<int:complaint_id>/convert")
@require_permission("maintenance", "create")
def convert_complaint(complaint_id):
    data = get_json()
    complaint = get_for_org(Complaint, complaint_id, current_organization_id(data), "Complaint")
    work_order = svc.convert_complaint_to_work_order(complaint, data, current_context().user_id)
    return jsonify({"work_order": work_order.serialize(), "complaint": complaint.serialize()}), 201


# ---------------- Work orders ----------------
@bp.get("/work-orders")
@require_permission("maintenance", "list", "list_all")
def list_work_orders():
    assigned_to = request.args.get("assigned_to", type=int)
    if arg_bool("mine"):
        assigned_to = current_context().user_id
    query = svc.list_work_orders_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        assigned_to=assigned_to,
    )
    return jsonify(paginate(query, (WorkOrder.created_at.desc(), WorkOrder.id.desc()), "work_orders")), 200


@bp.post("/work-orders")
@require_permission("maintenance", "create")
def create_work_order():
    data = get_json()
    work_order = svc.create_work_order(current_organization_id(data), data, current_context().user_id)
    return jsonify({"work_order": work_order.serialize()}), 201


@bp.get("/work-orders/<int:work_order_id>")
@require_permission("maintenance", "read", "read_all")
def get_work_order(work_order_id):
    work_order = get_for_org(WorkOrder, work_order_id, current_organization_id(), "Work order")
    return jsonify({"work_order": work_order.serialize()}), 200


@bp.put("/work-orders/<int:work_order_id>")
@require_permission("maintenance", "update")
def update_work_order(work_order_id):
    data = get_json()
    work_order = get_for_org(WorkOrder, work_order_id, current_organization_id(data), "Work order")
    return jsonify({"work_order": svc.update_work_order(work_order, data).serialize()}), 200


@bp.post("/work-orders/<int:work_order_id>/complete")
@require_any_permission(("maintenance", "update"), ("maintenance", "complete"))
def complete_work_order(work_order_id):
    data = get_json()
    work_order = get_for_org(WorkOrder, work_order_id, current_organization_id(data), "Work order")
    return jsonify({"work_order": svc.complete_work_order(work_order, data).serialize()}), 200
