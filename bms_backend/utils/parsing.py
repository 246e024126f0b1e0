"""Request-value parsing shared by routes and services."""
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser
from flask import request

from ..errors import ValidationError


def parse_date(value, label="date"):
    """Parse ``YYYY-MM-DD`` (or a full timestamp) into a ``date``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid {label}")


def parse_datetime(value, label="timestamp"):
    """Parse an ISO-8601 timestamp into a naive UTC ``datetime``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except (ValueError, OverflowError):
            raise ValidationError(f"Invalid {label}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_decimal(value, label="amount", allow_none=False):
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{label} is required")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {label}")
    if not result.is_finite():
        raise ValidationError(f"Invalid {label}")
    return result


def to_int(value, label="id", allow_none=False):
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{label} is required")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}")


def to_bool(value, label, default=False):
    """JSON flags; accepts real booleans, 0/1 and the usual true/false strings."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    raise ValidationError(f"{label} must be a boolean")


def get_json():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def get_pagination(default_limit=50, max_limit=200):
    try:
        limit = max(1, min(int(request.args.get("limit", default_limit)), max_limit))
        offset = max(0, int(request.args.get("offset", 0)))
    except ValueError:
        raise ValidationError("limit and offset must be integers")
    return limit, offset


def paginate(query, order_by, key):
    """Apply limit/offset paging and shape the list response."""
    limit, offset = get_pagination()
    total = query.count()
    items = query.order_by(*order_by).limit(limit).offset(offset).all()
    return {"total": total, key: [item.serialize() for item in items]}


def arg_bool(name):
    value = request.args.get(name)
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes")
