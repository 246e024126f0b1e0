from flask import Blueprint, jsonify, request

from ..models import User
from ..security import current_context, current_organization_id, require_permission
from ..services import users as svc
from ..utils.parsing import get_json, paginate, to_int

bp = Blueprint("users", __name__)


def _list_scope():
    """SUPER_ADMIN without an organization filter sees every user."""
    ctx = current_context()
    if ctx.is_super_admin and request.args.get("organization_id") is None:
        return None
    return current_organization_id()


@bp.get("/users")
@require_permission("users", "list", "list_all")
def list_users():
    query = svc.list_users_query(
        _list_scope(),
        role=request.args.get("role"),
        status=request.args.get("status"),
        search=(request.args.get("search") or "").strip() or None,
    )
    return jsonify(paginate(query, (User.name, User.id), "users")), 200


@bp.post("/users")
@require_permission("users", "create", "create_org_admin")
def create_user():
    data = get_json()
    user = svc.create_user(current_context(), current_organization_id(data), data)
    return jsonify({"user": user.serialize()}), 201


@bp.get("/users/<int:user_id>")
@require_permission()
def get_user(user_id):
    ctx = current_context()
    if user_id != ctx.user_id and not ctx.can("users", "read", "read_all"):
        return jsonify({"error": "forbidden", "message": "Access denied: requires users.read"}), 403
    org_id = ctx.organization_id if not ctx.is_super_admin else None
    return jsonify({"user": svc.get_user(org_id, user_id, ctx).serialize()}), 200


@bp.put("/users/<int:user_id>")
@require_permission()
def update_user(user_id):
    ctx = current_context()
    org_id = ctx.organization_id if not ctx.is_super_admin else None
    user = svc.get_user(org_id, user_id, ctx)
    user = svc.update_user(ctx, user, get_json())
    return jsonify({"user": user.serialize()}), 200


@bp.delete("/users/<int:user_id>")
@require_permission("users", "delete")
def delete_user(user_id):
    ctx = current_context()
    user = svc.get_user(ctx.organization_id, user_id, ctx)
    svc.delete_user(ctx, user)
    return jsonify({"message": "User deleted", "user": user.serialize()}), 200


@bp.post("/users/bulk-delete")
@require_permission("users", "delete")
def bulk_delete_users():
    ctx = current_context()
    data = get_json()
    user_ids = data.get("user_ids")
    if isinstance(user_ids, list):
        user_ids = [to_int(u, "user id") for u in user_ids]
    result = svc.bulk_delete_users(ctx, ctx.organization_id, user_ids)
    return jsonify(result), 200
