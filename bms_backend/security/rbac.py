# bms_backend/security/rbac.py
from dataclasses import dataclass, field
from functools import wraps
from typing import List, Optional

from flask import g, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..errors import AccessDeniedError, NotFoundError
from ..extensions import db
from .permissions import SUPER_ADMIN, has_any_role_permission


@dataclass
class AuthContext:
    user_id: int
    organization_id: Optional[int]
    roles: List[str] = field(default_factory=list)
    tenant_id: Optional[int] = None

    @property
    def is_super_admin(self) -> bool:
        return SUPER_ADMIN in self.roles

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def can(self, module: str, *actions: str) -> bool:
        if self.is_super_admin:
            return True
        return any(has_any_role_permission(self.roles, module, action) for action in actions)

    def only_own(self, module: str) -> bool:
        """True when the caller may only see its own records in ``module``."""
        if self.can(module, "read", "list"):
            return False
        return self.can(module, "read_own", "list_own")


def load_auth_context() -> Optional[AuthContext]:
    """Resolve the caller from the bearer token and the current user row."""
    from ..models import User

    verify_jwt_in_request()
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        return None

    user = db.session.get(User, user_id)
    if user is None or user.status != "active":
        return None

    ctx = AuthContext(
        user_id=user.id,
        organization_id=user.organization_id,
        roles=list(user.roles or []),
        tenant_id=user.tenant_id,
    )
    g.auth_context = ctx
    return ctx


def current_context() -> AuthContext:
    return g.auth_context


def require_permission(module: Optional[str] = None, *actions: str):
    """Usage: @require_permission("invoices", "create")

    With no module the route only requires an authenticated, active user.
    """
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ctx = load_auth_context()
            if ctx is None:
                return jsonify({"error": "unauthorized", "message": "Authentication required"}), 401
            if module and not ctx.can(module, *actions):
                return jsonify({
                    "error": "forbidden",
                    "message": f"Access denied: requires {module}.{' or '.join(actions)}",
                }), 403
            return fn(*args, **kwargs)
        return wrapper
    return deco


def require_any_permission(*checks):
    """Usage: @require_any_permission(("security", "create"), ("parking", "update"))"""
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ctx = load_auth_context()
            if ctx is None:
                return jsonify({"error": "unauthorized", "message": "Authentication required"}), 401
            if not any(ctx.can(module, action) for module, action in checks):
                wanted = " or ".join(f"{m}.{a}" for m, a in checks)
                return jsonify({"error": "forbidden", "message": f"Access denied: requires {wanted}"}), 403
            return fn(*args, **kwargs)
        return wrapper
    return deco


def current_organization_id(data=None) -> int:
    """Organization the request acts on.

    Organization users always act on their own organization; a SUPER_ADMIN
    names one through ``organization_id`` in the query string or body.
    """
    ctx = current_context()
    if not ctx.is_super_admin:
        if ctx.organization_id is None:
            raise AccessDeniedError("Organization context is required")
        return ctx.organization_id

    raw = request.args.get("organization_id")
    if raw is None and data:
        raw = data.get("organization_id")
    if raw is None:
        raw = ctx.organization_id
    if raw is None or raw == "":
        raise AccessDeniedError("Organization context is required")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise AccessDeniedError("Organization context is required")


def own_tenant_scope(module: str, requested=None):
    """Tenant filter for list/read routes: resident accounts are pinned to their own tenant id."""
    ctx = current_context()
    if not ctx.only_own(module):
        return requested
    if ctx.tenant_id is None:
        raise AccessDeniedError("No tenant profile is linked to this account")
    return ctx.tenant_id


def ensure_own(module: str, record, label: str):
    ctx = current_context()
    if ctx.only_own(module) and record.tenant_id != ctx.tenant_id:
        raise NotFoundError(f"{label} not found")
    return record
