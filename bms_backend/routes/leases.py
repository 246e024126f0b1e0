from flask import Blueprint, jsonify, request

from ..models import Lease
from ..security import current_organization_id, ensure_own, own_tenant_scope, require_permission
from ..services import leases as svc
from ..services.common import get_for_org
from ..services.invoice_generation import generate_invoice_for_lease
from ..utils.parsing import get_json, paginate

bp = Blueprint("leases", __name__)


@bp.get("/leases")
@require_permission("leases", "list", "list_all", "read_own")
def list_leases():
    query = svc.list_leases_query(
        current_organization_id(),
        status=request.args.get("status"),
        tenant_id=own_tenant_scope("leases", request.args.get("tenant_id", type=int)),
        unit_id=request.args.get("unit_id", type=int),
        expiring_within=request.args.get("expiring_within", type=int),
    )
    return jsonify(paginate(query, (Lease.start_date.desc(), Lease.id.desc()), "leases")), 200


@bp.post("/leases")
@require_permission("leases", "create")
def create_lease():
    data = get_json()
    lease = svc.create_lease(current_organization_id(data), data)
    return jsonify({"lease": lease.serialize()}), 201


@bp.get("/leases/<int:lease_id>")
@require_permission("leases", "read", "read_all", "read_own")
def get_lease(lease_id):
    lease = get_for_org(Lease, lease_id, current_organization_id(), "Lease")
    ensure_own("leases", lease, "Lease")
    return jsonify({"lease": lease.serialize()}), 200


@bp.put("/leases/<int:lease_id>")
@require_permission("leases", "update")
def update_lease(lease_id):
    data = get_json()
    lease = get_for_org(Lease, lease_id, current_organization_id(data), "Lease")
    return jsonify({"lease": svc.update_lease(lease, data).serialize()}), 200


@bp.post("/leases/<int:lease_id>/terminate")
@require_permission("leases", "terminate")
def terminate_lease(lease_id):
    data = get_json()
    lease = get_for_org(Lease, lease_id, current_organization_id(data), "Lease")
    lease = svc.terminate_lease(lease, data.get("termination_date"), data.get("reason"))
    return jsonify({"lease": lease.serialize()}), 200


@bp.post("/leases/<int:lease_id>/invoices")
@require_permission("invoices", "create")
def generate_lease_invoice(lease_id):
    data = get_json()
    org_id = current_organization_id(data)
    get_for_org(Lease, lease_id, org_id, "Lease")
    invoice = generate_invoice_for_lease(
        lease_id,
        org_id,
        period_start=data.get("period_start"),
        period_end=data.get("period_end"),
        custom_items=data.get("items"),
    )
    return jsonify({"invoice": invoice.serialize()}), 201
