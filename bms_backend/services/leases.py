import logging
from datetime import date, timedelta

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Lease, Tenant, Unit
from ..utils.parsing import parse_date, to_decimal, to_int
from .common import require_choice, resolve_reference

logger = logging.getLogger(__name__)

BILLING_CYCLES = ("monthly", "quarterly", "annually")
CHARGE_FREQUENCIES = ("monthly", "quarterly", "annually", "one-time")
STATUSES = ("active", "expired", "terminated", "pending")


def _validate_charges(charges):
    if charges is None:
        return None
    if not isinstance(charges, list):
        raise ValidationError("additional_charges must be a list")
    cleaned = []
    for charge in charges:
        if not isinstance(charge, dict) or not (charge.get("name") or "").strip():
            raise ValidationError("Each additional charge needs a name")
        amount = to_decimal(charge.get("amount"), "charge amount")
        if amount < 0:
            raise ValidationError("Charge amount cannot be negative")
        frequency = charge.get("frequency") or "monthly"
        require_choice(frequency, CHARGE_FREQUENCIES, "frequency")
        cleaned.append({"name": charge["name"].strip(), "amount": float(amount), "frequency": frequency})
    return cleaned


def _validate_terms(start_date, end_date, rent_amount, due_day):
    if end_date is not None and end_date <= start_date:
        raise ValidationError("End date must be after start date")
    if rent_amount is None or rent_amount <= 0:
        raise ValidationError("rent_amount must be greater than zero")
    if due_day < 1 or due_day > 31:
        raise ValidationError("dueDay must be between 1 and 31")


def _ensure_unit_free(unit_id, exclude_id=None):
    query = Lease.query.filter_by(unit_id=unit_id, status="active")
    if exclude_id is not None:
        query = query.filter(Lease.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Unit already has an active lease")


def create_lease(organization_id, data):
    tenant_id = to_int(data.get("tenant_id"), "tenant_id")
    unit_id = to_int(data.get("unit_id"), "unit_id")
    start_date = parse_date(data.get("start_date"), "start_date")
    if start_date is None:
        raise ValidationError("start_date is required")
    end_date = parse_date(data.get("end_date"), "end_date")
    rent_amount = to_decimal(data.get("rent_amount"), "rent_amount")
    due_day = to_int(data.get("due_day", 1), "due_day")
    billing_cycle = require_choice(data.get("billing_cycle") or "monthly", BILLING_CYCLES, "billing_cycle")
    status = require_choice(data.get("status") or "active", STATUSES, "status")
    _validate_terms(start_date, end_date, rent_amount, due_day)

    resolve_reference(Tenant, tenant_id, organization_id, "Tenant")
    unit = resolve_reference(Unit, unit_id, organization_id, "Unit")
    if status == "active":
        _ensure_unit_free(unit_id)

    lease = Lease(
        organization_id=organization_id,
        tenant_id=tenant_id,
        unit_id=unit_id,
        start_date=start_date,
        end_date=end_date,
        rent_amount=rent_amount,
        deposit_amount=to_decimal(data.get("deposit_amount"), "deposit_amount", allow_none=True),
        billing_cycle=billing_cycle,
        due_day=due_day,
        additional_charges=_validate_charges(data.get("additional_charges")),
        status=status,
    )
    lease.unit = unit
    if status == "active":
        lease.activate()
    db.session.add(lease)
    db.session.commit()
    logger.info("Lease created: %s tenant=%s unit=%s", lease.id, tenant_id, unit_id)
    return lease


def update_lease(lease, data):
    start_date = parse_date(data.get("start_date"), "start_date") if "start_date" in data else lease.start_date
    end_date = parse_date(data.get("end_date"), "end_date") if "end_date" in data else lease.end_date
    rent_amount = to_decimal(data.get("rent_amount"), "rent_amount") if "rent_amount" in data else lease.rent_amount
    due_day = to_int(data.get("due_day"), "due_day") if "due_day" in data else lease.due_day
    _validate_terms(start_date, end_date, rent_amount, due_day)

    if "billing_cycle" in data:
        lease.billing_cycle = require_choice(data["billing_cycle"], BILLING_CYCLES, "billing_cycle")
    if "additional_charges" in data:
        lease.additional_charges = _validate_charges(data["additional_charges"])
    if "deposit_amount" in data:
        lease.deposit_amount = to_decimal(data["deposit_amount"], "deposit_amount", allow_none=True)
    if "status" in data and data["status"] != lease.status:
        status = require_choice(data["status"], STATUSES, "status")
        if status == "active":
            _ensure_unit_free(lease.unit_id, exclude_id=lease.id)
            lease.activate()
        else:
            lease.status = status

    lease.start_date = start_date
    lease.end_date = end_date
    lease.rent_amount = rent_amount
    lease.due_day = due_day
    db.session.commit()
    return lease


def terminate_lease(lease, termination_date=None, reason=None):
    if lease.status == "terminated":
        raise ValidationError("Lease is already terminated")
    lease.terminate(parse_date(termination_date, "termination_date"), reason)
    db.session.commit()
    logger.info("Lease terminated: %s", lease.id)
    return lease


def list_leases_query(organization_id, status=None, tenant_id=None, unit_id=None, expiring_within=None):
    query = Lease.query.filter(Lease.organization_id == organization_id)
    if status:
        query = query.filter(Lease.status == status)
    if tenant_id:
        query = query.filter(Lease.tenant_id == tenant_id)
    if unit_id:
        query = query.filter(Lease.unit_id == unit_id)
    if expiring_within:
        today = date.today()
        query = query.filter(
            Lease.status == "active",
            Lease.end_date.isnot(None),
            Lease.end_date >= today,
            Lease.end_date <= today + timedelta(days=expiring_within),
        )
    return query


def find_active_lease_for_tenant(tenant_id, organization_id):
    return (
        Lease.query.filter_by(tenant_id=tenant_id, organization_id=organization_id, status="active")
        .order_by(Lease.start_date.desc())
        .first()
    )
