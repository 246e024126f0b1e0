from flask import Blueprint, jsonify, request

from ..errors import NotFoundError
from ..models import Organization
from ..security import current_context, require_permission
from ..services import organizations as svc
from ..utils.parsing import get_json, paginate

bp = Blueprint("organizations", __name__)


def _visible_organization(org_id):
    ctx = current_context()
    if not ctx.is_super_admin and ctx.organization_id != org_id:
        raise NotFoundError("Organization not found")
    return svc.get_organization(org_id)


@bp.get("/organizations")
@require_permission("organizations", "list_all")
def list_organizations():
    query = Organization.query
    status = request.args.get("status")
    if status:
        query = query.filter(Organization.status == status)
    return jsonify(paginate(query, (Organization.name, Organization.id), "organizations")), 200


@bp.post("/organizations")
@require_permission("organizations", "create")
def create_organization():
    org = svc.create_organization(get_json())
    return jsonify({"organization": org.serialize()}), 201


@bp.get("/organizations/<int:org_id>")
@require_permission("organizations", "read")
def get_organization(org_id):
    return jsonify({"organization": _visible_organization(org_id).serialize()}), 200


@bp.put("/organizations/<int:org_id>")
@require_permission("organizations", "update")
def update_organization(org_id):
    org = svc.update_organization(_visible_organization(org_id), get_json())
    return jsonify({"organization": org.serialize()}), 200


@bp.post("/organizations/<int:org_id>/deactivate")
@require_permission("organizations", "deactivate")
def deactivate_organization(org_id):
    org = svc.deactivate_organization(svc.get_organization(org_id))
    return jsonify({"organization": org.serialize()}), 200
