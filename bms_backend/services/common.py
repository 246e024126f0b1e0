"""Organization-scoped lookups shared by the service modules."""
from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..extensions import db


def get_for_org(model, record_id, organization_id, label):
    """Fetch a record addressed by URL; other organizations' rows look missing."""
    record = db.session.get(model, record_id)
    if record is None or record.organization_id != organization_id:
        raise NotFoundError(f"{label} not found")
    return record


def resolve_reference(model, record_id, organization_id, label):
    """Fetch a record referenced from a payload."""
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFoundError(f"{label} not found")
    if record.organization_id != organization_id:
        raise AccessDeniedError(f"{label} does not belong to the same organization")
    return record


def require_choice(value, choices, label):
    if value not in choices:
        raise ValidationError(f"{label} must be one of: {', '.join(choices)}")
    return value

