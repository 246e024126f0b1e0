import logging
import re

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Organization
from .common import require_choice

logger = logging.getLogger(__name__)

STATUSES = ("active", "inactive", "suspended")
UPDATABLE = ("name", "contact_email", "contact_phone", "address", "settings")


def generate_code(name):
    base = re.sub(r"[^A-Z0-9]+", "-", name.upper()).strip("-")[:40] or "ORG"
    code, n = base, 1
    while Organization.query.filter_by(code=code).first() is not None:
        n += 1
        code = f"{base}-{n}"
    return code


def _check_unique(field, value, message, exclude_id=None):
    if not value:
        return
    query = Organization.query.filter(getattr(Organization, field) == value)
    if exclude_id is not None:
        query = query.filter(Organization.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(message)


def _check_all_unique(data, exclude_id=None):
    _check_unique("code", data.get("code"), "Organization code already exists", exclude_id)
    _check_unique("subdomain", data.get("subdomain"), "Subdomain already exists", exclude_id)
    _check_unique("domain", data.get("domain"), "Domain already exists", exclude_id)


def create_organization(data):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Organization name is required")
    status = require_choice(data.get("status") or "active", STATUSES, "status")

    _check_all_unique(data)
    org = Organization(
        name=name,
        code=data.get("code") or generate_code(name),
        contact_email=data.get("contact_email"),
        contact_phone=data.get("contact_phone"),
        address=data.get("address"),
        status=status,
        domain=data.get("domain") or None,
        subdomain=data.get("subdomain") or None,
        settings=data.get("settings"),
    )
    db.session.add(org)
    db.session.commit()
    logger.info("Organization created: %s (%s)", org.id, org.code)
    return org


def get_organization(organization_id):
    org = db.session.get(Organization, organization_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


def update_organization(org, data):
    if "name" in data and not (data.get("name") or "").strip():
        raise ValidationError("Organization name is required")
    if "status" in data:
        require_choice(data["status"], STATUSES, "status")
    _check_all_unique(data, exclude_id=org.id)

    for field in UPDATABLE:
        if field in data:
            setattr(org, field, data[field])
    for field in ("code", "domain", "subdomain", "status"):
        if data.get(field):
            setattr(org, field, data[field])
    db.session.commit()
    return org


def deactivate_organization(org):
    org.status = "inactive"
    db.session.commit()
    logger.info("Organization deactivated: %s", org.id)
    return org
