import logging

from sqlalchemy import or_

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Tenant
from .common import require_choice

logger = logging.getLogger(__name__)

LANGUAGES = ("am", "en", "om", "ti")
STATUSES = ("active", "inactive", "suspended")
TEXT_FIELDS = ("first_name", "last_name", "email", "national_id", "notes")


def _check_phone(organization_id, phone, exclude_id=None):
    query = Tenant.query.filter_by(organization_id=organization_id, primary_phone=phone)
    if exclude_id is not None:
        query = query.filter(Tenant.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Phone number already exists for another tenant")


def _apply(tenant, data):
    for field in TEXT_FIELDS:
        if field in data:
            value = data[field]
            setattr(tenant, field, value.strip() if isinstance(value, str) else value)
    if "language" in data and data["language"] is not None:
        tenant.language = require_choice(data["language"], LANGUAGES, "language")
    if "status" in data:
        tenant.status = require_choice(data["status"], STATUSES, "status")
    if "emergency_contact" in data:
        tenant.emergency_contact = data["emergency_contact"]


def create_tenant(organization_id, data):
    first_name = (data.get("first_name") or "").strip()
    last_name = (data.get("last_name") or "").strip()
    phone = (data.get("primary_phone") or "").strip()
    if not first_name or not last_name or not phone:
        raise ValidationError("first_name, last_name, and primary_phone are required")
    _check_phone(organization_id, phone)

    tenant = Tenant(organization_id=organization_id, primary_phone=phone, status="active")
    _apply(tenant, data)
    db.session.add(tenant)
    db.session.commit()
    logger.info("Tenant created: %s org=%s", tenant.id, organization_id)
    return tenant


def update_tenant(tenant, data):
    if "primary_phone" in data:
        phone = (data.get("primary_phone") or "").strip()
        if not phone:
            raise ValidationError("primary_phone cannot be empty")
        _check_phone(tenant.organization_id, phone, exclude_id=tenant.id)
        tenant.primary_phone = phone
    for field in ("first_name", "last_name"):
        if field in data and not (data.get(field) or "").strip():
            raise ValidationError(f"{field} cannot be empty")
    _apply(tenant, data)
    db.session.commit()
    return tenant


def delete_tenant(tenant):
    if tenant.leases:
        raise ConflictError("Cannot delete tenant with existing leases")
    db.session.delete(tenant)
    db.session.commit()


def list_tenants_query(organization_id, status=None, search=None):
    query = Tenant.query.filter(Tenant.organization_id == organization_id)
    if status:
        query = query.filter(Tenant.status == status)
    if search:
        like = f"%{search}%"
        query = query.filter(
            or_(
                Tenant.first_name.ilike(like),
                Tenant.last_name.ilike(like),
                Tenant.primary_phone.ilike(like),
                Tenant.email.ilike(like),
            )
        )
    return query
