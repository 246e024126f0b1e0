import logging

from sqlalchemy import or_

from ..errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Tenant, User
from ..security.permissions import ORG_ADMIN, ROLES, SUPER_ADMIN, TENANT
from ..utils.parsing import to_int
from .common import require_choice, resolve_reference

logger = logging.getLogger(__name__)

STATUSES = ("active", "invited", "inactive", "suspended")
RESTRICTED_ROLES = (ORG_ADMIN, SUPER_ADMIN, TENANT)
# account fields that need users.update even on your own row
ADMIN_FIELDS = ("status", "tenant_id")
MAX_BULK_DELETE = 50


def normalize_email(email):
    email = (email or "").strip().lower()
    return email or None


def find_user_by_identifier(identifier, organization_id=None):
    """Look a user up by email (anything containing "@") or by phone."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    if "@" in identifier:
        return User.query.filter_by(email=identifier.lower()).first()
    query = User.query.filter_by(phone=identifier)
    if organization_id is not None:
        query = query.filter_by(organization_id=organization_id)
    return query.order_by(User.id).first()


def _validate_roles(roles):
    if not isinstance(roles, list) or not roles:
        raise ValidationError("At least one role is required")
    unknown = [r for r in roles if r not in ROLES]
    if unknown:
        raise ValidationError(f"Invalid roles: {', '.join(unknown)}")
    return roles


def _check_restricted_roles(ctx, roles):
    if ctx.is_super_admin:
        return
    if any(role in RESTRICTED_ROLES for role in roles):
        raise AccessDeniedError(
            "You cannot assign ORG_ADMIN, SUPER_ADMIN, or TENANT roles. "
            "TENANT accounts must be created through the tenants page."
        )


def _check_phone(organization_id, phone, exclude_id=None):
    query = User.query.filter_by(organization_id=organization_id, phone=phone)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Phone number already exists in this organization")


def _check_email(email, exclude_id=None):
    if not email:
        return
    query = User.query.filter_by(email=email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Email already exists")


def _resolve_tenant(organization_id, tenant_id):
    if tenant_id is None or tenant_id == "":
        return None
    if organization_id is None:
        raise ValidationError("Only organization users can be linked to a tenant")
    return resolve_reference(Tenant, to_int(tenant_id, "tenant_id"), organization_id, "Tenant").id


def create_user(ctx, organization_id, data):
    name = (data.get("name") or "").strip()
    phone = (data.get("phone") or "").strip()
    if not name or not phone:
        raise ValidationError("name and phone are required")

    roles = _validate_roles(data.get("roles"))
    _check_restricted_roles(ctx, roles)
    if not ctx.is_super_admin and organization_id != ctx.organization_id:
        raise AccessDeniedError("Only SUPER_ADMIN can create users for another organization")
    if SUPER_ADMIN in roles:
        organization_id = None

    status = require_choice(data.get("status") or "active", STATUSES, "status")
    email = normalize_email(data.get("email"))
    _check_phone(organization_id, phone)
    _check_email(email)
    tenant_id = _resolve_tenant(organization_id, data.get("tenant_id"))

    user = User(
        organization_id=organization_id,
        name=name,
        phone=phone,
        email=email,
        roles=roles,
        status=status,
        tenant_id=tenant_id,
    )
    if data.get("password"):
        user.set_password(data["password"])
    db.session.add(user)
    db.session.commit()
    logger.info("User created: %s roles=%s org=%s", user.id, roles, organization_id)
    return user


def get_user(organization_id, user_id, ctx=None):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if ctx is not None and ctx.is_super_admin:
        return user
    if user.organization_id != organization_id:
        raise NotFoundError("User not found")
    return user


def list_users_query(organization_id, role=None, status=None, search=None):
    query = User.query
    if organization_id is not None:
        query = query.filter(User.organization_id == organization_id)
    if status:
        query = query.filter(User.status == status)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like), User.phone.ilike(like)))
    if role:
        # roles is a JSON list; match the quoted role name
        query = query.filter(db.cast(User.roles, db.String).like(f'%"{role}"%'))
    return query


def update_user(ctx, user, data):
    is_self = user.id == ctx.user_id

    if not is_self and not ctx.can("users", "update"):
        raise AccessDeniedError("Access denied: requires users.update")
    if (
        not ctx.is_super_admin
        and not is_self
        and any(user.has_role(r) for r in (ORG_ADMIN, SUPER_ADMIN))
    ):
        raise AccessDeniedError(
            "You cannot edit users with ORG_ADMIN or SUPER_ADMIN roles. "
            "You can only edit your own account."
        )
    changed = [f for f in ADMIN_FIELDS if f in data and data[f] != getattr(user, f)]
    if is_self and changed and not ctx.can("users", "update"):
        raise AccessDeniedError("Access denied: status and tenant_id require users.update")

    if "organization_id" in data and data["organization_id"] != user.organization_id:
        if not ctx.is_super_admin:
            raise AccessDeniedError("Cannot change organizationId: requires SUPER_ADMIN permission")
        user.organization_id = data["organization_id"]

    if "roles" in data and data["roles"] != list(user.roles or []):
        if not ctx.can("users", "assign_roles"):
            raise AccessDeniedError("Access denied: requires users.assign_roles")
        roles = _validate_roles(data["roles"])
        _check_restricted_roles(ctx, roles)
        user.roles = roles

    if "phone" in data:
        phone = (data.get("phone") or "").strip()
        if not phone:
            raise ValidationError("phone cannot be empty")
        _check_phone(user.organization_id, phone, exclude_id=user.id)
        user.phone = phone
    if "email" in data:
        email = normalize_email(data.get("email"))
        _check_email(email, exclude_id=user.id)
        user.email = email
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        user.name = name
    if "status" in data:
        user.status = require_choice(data["status"], STATUSES, "status")
    if "tenant_id" in data:
        user.tenant_id = _resolve_tenant(user.organization_id, data["tenant_id"])
    if data.get("password"):
        user.set_password(data["password"])

    db.session.commit()
    return user


def _delete_user(ctx, user):
    if user.has_role(SUPER_ADMIN):
        raise AccessDeniedError("Cannot delete SUPER_ADMIN user")
    if user.id == ctx.user_id:
        raise ValidationError("You cannot delete your own account")
    if not ctx.is_super_admin and user.has_role(ORG_ADMIN):
        raise AccessDeniedError("You cannot delete users with ORG_ADMIN or SUPER_ADMIN roles.")
    if user.has_role(ORG_ADMIN):
        remaining = [
            u for u in User.query.filter(
                User.organization_id == user.organization_id,
                User.status != "inactive",
            ).all()
            if u.has_role(ORG_ADMIN)
        ]
        if len(remaining) <= 1:
            raise AccessDeniedError("Cannot delete last ORG_ADMIN in organization")
    user.status = "inactive"


def delete_user(ctx, user):
    _delete_user(ctx, user)
    db.session.commit()
    logger.info("User %s deactivated by %s", user.id, ctx.user_id)
    return user


def bulk_delete_users(ctx, organization_id, user_ids):
    if not isinstance(user_ids, list) or not user_ids:
        raise ValidationError("user_ids must be a non-empty list")
    if len(user_ids) > MAX_BULK_DELETE:
        raise ValidationError(f"Cannot delete more than {MAX_BULK_DELETE} users at once")

    results = []
    for user_id in user_ids:
        try:
            user = get_user(organization_id, user_id, ctx)
            _delete_user(ctx, user)
            db.session.commit()
            results.append({"user_id": user_id, "success": True})
        except (NotFoundError, AccessDeniedError, ValidationError) as e:
            db.session.rollback()
            results.append({"user_id": user_id, "success": False, "error": e.message})

    deleted = sum(1 for r in results if r["success"])
    logger.info("Bulk delete by %s: %d deleted, %d failed", ctx.user_id, deleted, len(results) - deleted)
    return {"results": results, "deleted": deleted, "failed": len(results) - deleted}
