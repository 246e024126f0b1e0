from flask import Blueprint, jsonify, request

from ..errors import NotFoundError
from ..models import Tenant
from ..security import current_context, current_organization_id, require_permission
from ..services import tenants as svc
from ..services.common import get_for_org
from ..utils.parsing import get_json, paginate

bp = Blueprint("tenants", __name__)


def _load_tenant(tenant_id, data=None):
    ctx = current_context()
    tenant = get_for_org(Tenant, tenant_id, current_organization_id(data), "Tenant")
    # resident accounts only reach their own record
    if not ctx.can("tenants", "list", "read_all") and ctx.tenant_id != tenant.id:
        raise NotFoundError("Tenant not found")
    return tenant


@bp.get("/tenants")
@require_permission("tenants", "list", "list_all")
def list_tenants():
    query = svc.list_tenants_query(
        current_organization_id(),
        status=request.args.get("status"),
        search=(request.args.get("search") or "").strip() or None,
    )
    return jsonify(paginate(query, (Tenant.last_name, Tenant.first_name, Tenant.id), "tenants")), 200


@bp.post("/tenants")
@require_permission("tenants", "create")
def create_tenant():
    data = get_json()
    tenant = svc.create_tenant(current_organization_id(data), data)
    return jsonify({"tenant": tenant.serialize()}), 201


@bp.get("/tenants/<int:tenant_id>")
@require_permission("tenants", "read", "read_all")
def get_tenant(tenant_id):
    return jsonify({"tenant": _load_tenant(tenant_id).serialize()}), 200


@bp.put("/tenants/<int:tenant_id>")
@require_permission("tenants", "update", "update_own")
def update_tenant(tenant_id):
    data = get_json()
    tenant = _load_tenant(tenant_id, data)
    if not current_context().can("tenants", "update"):
        data.pop("status", None)
    return jsonify({"tenant": svc.update_tenant(tenant, data).serialize()}), 200


@bp.delete("/tenants/<int:tenant_id>")
@require_permission("tenants", "delete")
def delete_tenant(tenant_id):
    tenant = get_for_org(Tenant, tenant_id, current_organization_id(), "Tenant")
    svc.delete_tenant(tenant)
    return jsonify({"message": "Tenant deleted"}), 200
