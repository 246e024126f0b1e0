"""Rent invoice generation from active leases.

Single-lease, per-organization batch and scheduled monthly runs share the
same period/proration rules so an invoice looks the same whichever path
produced it.
"""
import calendar
import logging
from datetime import date

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, DomainError, ValidationError
from ..extensions import db
from ..models import Invoice, Lease, Organization
from ..utils.parsing import parse_date
from .common import resolve_reference
from .invoices import calculate_invoice_totals, generate_invoice_number, validate_items

logger = logging.getLogger(__name__)

CYCLE_MONTHS = {"monthly": 1, "quarterly": 3, "annually": 12}


def get_days_in_billing_cycle(billing_cycle, period_start):
    months = CYCLE_MONTHS.get(billing_cycle)
    if months is None:
        return 30
    return ((period_start + relativedelta(months=months)) - period_start).days


def calculate_prorated_amount(base_amount, total_days, actual_days):
    if total_days <= 0 or actual_days <= 0:
        return 0
    # half-up, whole currency units
    return int(float(base_amount) * actual_days / total_days + 0.5)


def calculate_period_dates(billing_cycle, reference_date=None):
    """Billing window containing ``reference_date``: first of its month to the end of the cycle."""
    reference_date = reference_date or date.today()
    start = reference_date.replace(day=1)
    months = CYCLE_MONTHS.get(billing_cycle, 1)
    end = start + relativedelta(months=months) - relativedelta(days=1)
    return start, end


def _clamped(year, month, day):
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def calculate_due_date(issue_date, due_day):
    due = _clamped(issue_date.year, issue_date.month, due_day)
    if due < issue_date:
        nxt = issue_date + relativedelta(months=1)
        due = _clamped(nxt.year, nxt.month, due_day)
    return due


def get_charges_for_billing_cycle(charges, billing_cycle):
    return [
        charge for charge in (charges or [])
        if charge.get("frequency") != "one-time" and charge.get("frequency") == billing_cycle
    ]


def generate_invoice_items_from_lease(lease, period_start, period_end, is_partial_period=False):
    total_days = get_days_in_billing_cycle(lease.billing_cycle, period_start)
    actual_days = (period_end - period_start).days + 1

    rent = float(lease.rent_amount)
    if is_partial_period:
        rent = calculate_prorated_amount(rent, total_days, actual_days)
    items = [{"description": "Monthly Rent", "amount": rent, "type": "rent"}]

    for charge in get_charges_for_billing_cycle(lease.additional_charges, lease.billing_cycle):
        amount = float(charge["amount"])
        if is_partial_period:
            amount = calculate_prorated_amount(amount, total_days, actual_days)
        items.append({"description": charge["name"], "amount": amount, "type": "charge"})
    return items


def invoice_exists_for_period(lease_id, period_start, period_end):
    return (
        Invoice.query.filter_by(lease_id=lease_id, period_start=period_start, period_end=period_end)
        .filter(Invoice.status != "cancelled")
        .first()
        is not None
    )


def _clamp_to_lease(lease, period_start, period_end):
    start, end, partial = period_start, period_end, False
    if lease.start_date > start:
        start, partial = lease.start_date, True
    if lease.end_date and lease.end_date < end:
        end, partial = lease.end_date, True
    return start, end, partial


def _create_lease_invoice(lease, items, period_start, period_end):
    issue_date = date.today()
    invoice = Invoice(
        organization_id=lease.organization_id,
        lease_id=lease.id,
        tenant_id=lease.tenant_id,
        unit_id=lease.unit_id,
        invoice_number=generate_invoice_number(lease.organization_id, issue_date.year),
        issue_date=issue_date,
        due_date=calculate_due_date(issue_date, lease.due_day),
        period_start=period_start,
        period_end=period_end,
        items=items,
        status="draft",
        invoice_type="rent",
        **calculate_invoice_totals(items, 0),
    )
    db.session.add(invoice)
    db.session.commit()
    return invoice


def generate_invoices_for_leases(organization_id, period_start, period_end, force_regenerate=False):
    """Draft one invoice per active lease; failures are reported per lease."""
    period_start = parse_date(period_start, "period_start")
    period_end = parse_date(period_end, "period_end")
    if period_start is None or period_end is None:
        raise ValidationError("Invalid period dates")
    if period_end <= period_start:
        raise ValidationError("Period end date must be after period start date")

    leases = (
        Lease.query.filter_by(organization_id=organization_id, status="active")
        .order_by(Lease.id)
        .all()
    )
    results = []
    for lease in leases:
        result = {"lease_id": lease.id, "invoice_id": None, "success": False, "error": None}
        try:
            if lease.end_date and lease.end_date < period_start:
                result["error"] = "Lease has already ended"
            elif lease.start_date > period_end:
                result["error"] = "Lease hasn't started yet"
            else:
                start, end, partial = _clamp_to_lease(lease, period_start, period_end)
                if not force_regenerate and invoice_exists_for_period(lease.id, start, end):
                    result["error"] = "Invoice already exists for this period"
                else:
                    items = generate_invoice_items_from_lease(lease, start, end, partial)
                    invoice = _create_lease_invoice(lease, items, start, end)
                    result.update(invoice_id=invoice.id, success=True)
        except (DomainError, SQLAlchemyError) as e:
            db.session.rollback()
            logger.warning("Invoice generation failed for lease %s: %s", lease.id, e)
            result["error"] = getattr(e, "message", None) or str(e)
        results.append(result)

    generated = sum(1 for r in results if r["success"])
    logger.info(
        "Generated %d/%d invoices for org %s (%s to %s)",
        generated, len(results), organization_id, period_start, period_end,
    )
    return results


def generate_invoice_for_lease(lease_id, organization_id, period_start=None, period_end=None, custom_items=None):
    lease = resolve_reference(Lease, lease_id, organization_id, "Lease")
    if lease.status != "active":
        raise ValidationError("Lease is not active")

    period_start = parse_date(period_start, "period_start")
    period_end = parse_date(period_end, "period_end")

    if custom_items:
        items = validate_items(custom_items)
        today = date.today()
        start, end = period_start or today, period_end or today
        if end < start:
            raise ValidationError("Period end date must be after period start date")
        invoice = _create_lease_invoice(lease, items, start, end)
        logger.info("Custom invoice %s generated for lease %s", invoice.invoice_number, lease.id)
        return invoice

    if period_start is None or period_end is None:
        period_start, period_end = calculate_period_dates(lease.billing_cycle)
    if period_end < period_start:
        raise ValidationError("Period end date must be after period start date")

    start, end, partial = _clamp_to_lease(lease, period_start, period_end)
    if end < start:
        raise ValidationError("Lease does not cover this period")
    if invoice_exists_for_period(lease.id, start, end):
        raise ConflictError("Invoice already exists for this period")

    items = generate_invoice_items_from_lease(lease, start, end, partial)
    invoice = _create_lease_invoice(lease, items, start, end)
    logger.info("Invoice %s generated for lease %s", invoice.invoice_number, lease.id)
    return invoice


def current_month_period(today=None):
    today = today or date.today()
    return calculate_period_dates("monthly", today)


def generate_monthly_invoices(organization_id=None, period_start=None, period_end=None,
                              auto_send=True, force_regenerate=False):
    """Scheduled run: generate (and optionally send) invoices for one or all active organizations."""
    from ..utils.notifications import send_invoice_to_tenant

    default_start, default_end = current_month_period()
    period_start = parse_date(period_start, "period_start") or default_start
    period_end = parse_date(period_end, "period_end") or default_end

    if organization_id is not None:
        org = db.session.get(Organization, organization_id)
        organizations = [org] if org is not None else []
    else:
        organizations = Organization.query.filter_by(status="active").order_by(Organization.id).all()

    all_results = []
    for org in organizations:
        summary = {
            "organization_id": org.id,
            "organization_name": org.name,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
        }
        try:
            results = generate_invoices_for_leases(org.id, period_start, period_end, force_regenerate)
        except DomainError as e:
            logger.error("Invoice generation failed for organization %s: %s", org.id, e.message)
            summary.update(results=[], summary={"total": 0, "successful": 0, "failed": 1},
                           sent_count=0, sent_errors=0)
            all_results.append(summary)
            continue

        sent_count = sent_errors = 0
        if auto_send:
            for result in results:
                if not result["success"]:
                    continue
                invoice = db.session.get(Invoice, result["invoice_id"])
                outcome = send_invoice_to_tenant(invoice)
                if outcome["success"]:
                    sent_count += 1
                else:
                    sent_errors += 1
                    logger.warning("Failed to send invoice %s: %s", invoice.id, outcome["errors"])

        successful = sum(1 for r in results if r["success"])
        summary.update(
            results=results,
            summary={"total": len(results), "successful": successful, "failed": len(results) - successful},
            sent_count=sent_count,
            sent_errors=sent_errors,
        )
        all_results.append(summary)
        logger.info(
            "Monthly invoices for organization %s: %d generated, %d sent", org.id, successful, sent_count
        )
    return all_results
