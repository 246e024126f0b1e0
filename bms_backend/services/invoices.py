import logging
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from ..errors import AccessDeniedError, ConflictError, ValidationError
from ..extensions import db
from ..models import Invoice, Lease, Organization, Tenant, Unit
from ..utils.parsing import parse_date, parse_datetime, to_decimal, to_int
from .common import require_choice, resolve_reference

logger = logging.getLogger(__name__)

ITEM_TYPES = ("rent", "charge", "penalty", "deposit", "other")
STATUSES = ("draft", "sent", "paid", "overdue", "cancelled")
INVOICE_TYPES = ("rent", "maintenance", "penalty", "other")
NUMBER_PATTERN = re.compile(r"^INV-\d{4}-(\d+)$")
CENT = Decimal("0.01")


def generate_invoice_number(organization_id, year=None):
    """Next ``INV-YYYY-NNN`` number for the organization and year."""
    year = year or date.today().year
    prefix = f"INV-{year}-"
    numbers = (
        db.session.query(Invoice.invoice_number)
        .filter(Invoice.organization_id == organization_id, Invoice.invoice_number.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (number,) in numbers:
        match = NUMBER_PATTERN.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:03d}"


def calculate_invoice_totals(items, tax=None):
    subtotal = sum((Decimal(str(item["amount"])) for item in items), Decimal("0"))
    tax = Decimal(str(tax)) if tax is not None else Decimal("0")
    return {"subtotal": subtotal, "tax": tax, "total": subtotal + tax}


def validate_items(items):
    if not isinstance(items, list) or not items:
        raise ValidationError("Invoice must have at least one item")
    cleaned = []
    for item in items:
        if not isinstance(item, dict) or not (item.get("description") or "").strip():
            raise ValidationError("Each invoice item needs a description")
        amount = to_decimal(item.get("amount"), "item amount")
        if amount < 0:
            raise ValidationError("Item amount cannot be negative")
        item_type = item.get("type") or "other"
        require_choice(item_type, ITEM_TYPES, "item type")
        cleaned.append({"description": item["description"].strip(), "amount": float(amount), "type": item_type})
    return cleaned


def _check_period(period_start, period_end):
    if period_start and period_end and period_end < period_start:
        raise ValidationError("Period end date must be after period start date")


def create_invoice(organization_id, data):
    """Create a lease invoice from a validated payload."""
    lease_id = to_int(data.get("lease_id"), "lease_id")
    lease = resolve_reference(Lease, lease_id, organization_id, "Lease")

    tenant_id = to_int(data.get("tenant_id"), "tenant_id", allow_none=True)
    if tenant_id is not None and tenant_id != lease.tenant_id:
        raise ValidationError("Tenant ID does not match the lease")
    unit_id = to_int(data.get("unit_id"), "unit_id", allow_none=True)
    if unit_id is not None and unit_id != lease.unit_id:
        raise ValidationError("Unit ID does not match the lease")

    items = validate_items(data.get("items"))
    issue_date = parse_date(data.get("issue_date"), "issue_date") or date.today()
    due_date = parse_date(data.get("due_date"), "due_date")
    period_start = parse_date(data.get("period_start"), "period_start")
    period_end = parse_date(data.get("period_end"), "period_end")
    if not due_date or not period_start or not period_end:
        raise ValidationError("due_date, period_start, and period_end are required")
    _check_period(period_start, period_end)

    totals = calculate_invoice_totals(items, to_decimal(data.get("tax"), "tax", allow_none=True))
    invoice = Invoice(
        organization_id=organization_id,
        lease_id=lease.id,
        tenant_id=lease.tenant_id,
        unit_id=lease.unit_id,
        invoice_number=data.get("invoice_number") or generate_invoice_number(organization_id, issue_date.year),
        issue_date=issue_date,
        due_date=due_date,
        period_start=period_start,
        period_end=period_end,
        items=items,
        status=require_choice(data.get("status") or "draft", STATUSES, "status"),
        notes=data.get("notes"),
        invoice_type="rent",
        currency=data.get("currency") or "ETB",
        **totals,
    )
    _check_number_free(organization_id, invoice.invoice_number)
    db.session.add(invoice)
    db.session.commit()
    logger.info("Invoice created: %s (%s) total=%s", invoice.id, invoice.invoice_number, invoice.total)
    return invoice


def _check_number_free(organization_id, invoice_number):
    if Invoice.query.filter_by(organization_id=organization_id, invoice_number=invoice_number).first():
        raise ConflictError(f'Invoice number "{invoice_number}" already exists')


def update_invoice_status(invoice, status, paid_at=None):
    require_choice(status, STATUSES, "status")
    if status == "paid":
        invoice.paid_at = parse_datetime(paid_at, "paid_at") or datetime.utcnow()
    elif invoice.status == "paid" or status == "overdue":
        invoice.paid_at = None
    invoice.status = status
    return invoice


def update_invoice(invoice, data):
    content_fields = {"items", "tax", "due_date", "issue_date", "period_start", "period_end", "notes"}
    if invoice.status != "draft" and content_fields.intersection(data):
        raise ValidationError("Only draft invoices can be modified. Use status update for other changes.")

    if "items" in data or "tax" in data:
        items = validate_items(data["items"]) if "items" in data else invoice.items
        tax = to_decimal(data.get("tax"), "tax", allow_none=True) if "tax" in data else invoice.tax
        totals = calculate_invoice_totals(items, tax)
        invoice.items = items
        invoice.subtotal, invoice.tax, invoice.total = totals["subtotal"], totals["tax"], totals["total"]
    for field in ("due_date", "issue_date", "period_start", "period_end"):
        if field in data:
            value = parse_date(data[field], field)
            if value is None:
                raise ValidationError(f"{field} cannot be empty")
            setattr(invoice, field, value)
    _check_period(invoice.period_start, invoice.period_end)
    if "notes" in data:
        invoice.notes = data["notes"]
    if "status" in data:
        update_invoice_status(invoice, data["status"], data.get("paid_at"))

    db.session.commit()
    return invoice


def cancel_invoice(invoice):
    if invoice.status == "paid":
        raise ValidationError("Cannot cancel a paid invoice")
    invoice.status = "cancelled"
    db.session.commit()
    logger.info("Invoice cancelled: %s", invoice.id)
    return invoice


def delete_invoice(invoice):
    if invoice.status not in ("draft", "cancelled"):
        raise ValidationError("Only draft or cancelled invoices can be deleted")
    db.session.delete(invoice)
    db.session.commit()


def list_invoices_query(organization_id, status=None, tenant_id=None, lease_id=None, unit_id=None,
                        due_from=None, due_to=None):
    query = Invoice.query.filter(Invoice.organization_id == organization_id)
    if status:
        query = query.filter(Invoice.status == status)
    if tenant_id:
        query = query.filter(Invoice.tenant_id == tenant_id)
    if lease_id:
        query = query.filter(Invoice.lease_id == lease_id)
    if unit_id:
        query = query.filter(Invoice.unit_id == unit_id)
    if due_from:
        query = query.filter(Invoice.due_date >= due_from)
    if due_to:
        query = query.filter(Invoice.due_date <= due_to)
    return query


def find_overdue_invoices(organization_id, as_of=None):
    cutoff = as_of or date.today()
    return (
        Invoice.query.filter(
            Invoice.organization_id == organization_id,
            Invoice.status.in_(("draft", "sent")),
            Invoice.due_date < cutoff,
        )
        .order_by(Invoice.due_date.asc())
        .all()
    )


def mark_overdue_invoices(organization_id, as_of=None):
    invoices = find_overdue_invoices(organization_id, as_of)
    for invoice in invoices:
        update_invoice_status(invoice, "overdue")
    db.session.commit()
    if invoices:
        logger.info("Marked %d invoices overdue for org %s", len(invoices), organization_id)
    return invoices


DEFAULT_REMINDER_SETTINGS = {
    "days_before_due": [7, 3, 0],
    "days_after_due": [3, 7, 14, 30],
    "escalation_enabled": True,
}


def get_reminder_settings(organization_id):
    """Organization overrides from ``settings["payment_reminders"]`` on top of the defaults."""
    org = db.session.get(Organization, organization_id)
    overrides = ((org.settings or {}) if org is not None else {}).get("payment_reminders") or {}
    return {key: overrides.get(key, default) for key, default in DEFAULT_REMINDER_SETTINGS.items()}


def reminder_offset(days_until_due, settings):
    """Days-until-due to remind with today, or None when no reminder is scheduled."""
    if days_until_due >= 0:
        return days_until_due if days_until_due in settings["days_before_due"] else None
    overdue = -days_until_due
    if overdue in settings["days_after_due"]:
        return days_until_due
    if settings["escalation_enabled"] and overdue > max(settings["days_after_due"] or [0]):
        return days_until_due
    return None


def process_payment_reminders(organization_id, today=None):
    """Remind tenants about sent/overdue invoices on the organization's reminder schedule."""
    from ..utils.notifications import send_payment_reminder

    today = today or date.today()
    settings = get_reminder_settings(organization_id)
    invoices = (
        Invoice.query.filter(
            Invoice.organization_id == organization_id,
            Invoice.status.in_(("sent", "overdue")),
        )
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )
    sent, errors = [], []
    for invoice in invoices:
        offset = reminder_offset((invoice.due_date - today).days, settings)
        if offset is None:
            continue
        outcome = send_payment_reminder(invoice, offset)
        if outcome["success"]:
            sent.append(invoice.id)
        else:
            errors.append(f"Invoice {invoice.id}: {', '.join(outcome['errors'])}")
    if sent or errors:
        logger.info("Payment reminders for org %s: %d sent, %d failed", organization_id, len(sent), len(errors))
    return {"reminders_sent": len(sent), "invoice_ids": sent, "errors": errors}


# ---------------- Ad-hoc invoices ----------------
AD_HOC_TYPES = ("maintenance", "penalty", "other")


def create_ad_hoc_invoice(organization_id, data):
    """Maintenance, penalty or other one-off charges billed against the tenant's active lease."""
    from ..models import WorkOrder
    from .leases import find_active_lease_for_tenant

    invoice_type = data.get("invoice_type")
    tenant_id = data.get("tenant_id")
    items = data.get("items")
    if not invoice_type or not tenant_id or not isinstance(items, list) or not items or not data.get("due_date"):
        raise ValidationError("invoiceType, tenantId, items (at least one), and dueDate are required")
    if invoice_type not in AD_HOC_TYPES:
        raise ValidationError("invoiceType must be one of: maintenance, penalty, other")

    linked_work_order_id = to_int(data.get("linked_work_order_id"), "linked_work_order_id", allow_none=True)
    linked_invoice_id = to_int(data.get("linked_invoice_id"), "linked_invoice_id", allow_none=True)
    if invoice_type == "maintenance" and linked_work_order_id is None:
        raise ValidationError("linkedWorkOrderId is required for maintenance invoices")
    if invoice_type == "penalty" and linked_invoice_id is None:
        raise ValidationError("linkedInvoiceId is required for penalty invoices")
    if linked_work_order_id is not None:
        resolve_reference(WorkOrder, linked_work_order_id, organization_id, "Work order")
    if linked_invoice_id is not None:
        resolve_reference(Invoice, linked_invoice_id, organization_id, "Linked invoice")

    tenant = resolve_reference(Tenant, to_int(tenant_id, "tenant_id"), organization_id, "Tenant")
    lease = find_active_lease_for_tenant(tenant.id, organization_id)
    if lease is None:
        raise ValidationError("Tenant must have an active lease to create an ad-hoc invoice")
    lease_id = to_int(data.get("lease_id"), "lease_id", allow_none=True)
    if lease_id is not None and lease_id != lease.id:
        explicit = resolve_reference(Lease, lease_id, organization_id, "Lease")
        if explicit.tenant_id != tenant.id:
            raise AccessDeniedError("Lease does not belong to the tenant")
        lease = explicit
    unit_id = to_int(data.get("unit_id"), "unit_id", allow_none=True)
    if unit_id is not None:
        resolve_reference(Unit, unit_id, organization_id, "Unit")
        if unit_id != lease.unit_id:
            raise ValidationError("Unit ID does not match the lease")

    items = validate_items(items)
    vat_rate = data.get("vat_rate")
    vat_rate = to_decimal(15 if vat_rate in (None, "") else vat_rate, "vat_rate")
    if vat_rate < 0:
        raise ValidationError("vat_rate cannot be negative")
    subtotal = calculate_invoice_totals(items)["subtotal"]
    tax = (subtotal * vat_rate / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    totals = calculate_invoice_totals(items, tax)

    issue_date = parse_date(data.get("issue_date"), "issue_date") or date.today()
    due_date = parse_date(data.get("due_date"), "due_date")
    period_start = parse_date(data.get("period_start"), "period_start") or issue_date
    period_end = parse_date(data.get("period_end"), "period_end") or issue_date
    _check_period(period_start, period_end)

    invoice = Invoice(
        organization_id=organization_id,
        lease_id=lease.id,
        tenant_id=tenant.id,
        unit_id=lease.unit_id,
        invoice_number=generate_invoice_number(organization_id, issue_date.year),
        issue_date=issue_date,
        due_date=due_date,
        period_start=period_start,
        period_end=period_end,
        items=items,
        status="draft",
        notes=data.get("notes"),
        invoice_type=invoice_type,
        linked_work_order_id=linked_work_order_id,
        linked_invoice_id=linked_invoice_id,
        vat_rate=vat_rate,
        currency=data.get("currency") or "ETB",
        exchange_rate=to_decimal(data.get("exchange_rate"), "exchange_rate", allow_none=True),
        **totals,
    )
    db.session.add(invoice)
    db.session.commit()
    logger.info("Ad-hoc %s invoice created: %s for tenant %s", invoice_type, invoice.invoice_number, tenant.id)
    return invoice
