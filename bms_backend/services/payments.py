import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..errors import AccessDeniedError, ConflictError, ValidationError
from ..extensions import db
from ..models import Invoice, Payment, Tenant
from ..utils.parsing import parse_datetime, to_decimal, to_int
from .common import require_choice, resolve_reference
from .invoices import update_invoice_status

logger = logging.getLogger(__name__)

METHODS = ("cash", "bank_transfer", "telebirr", "cbe_birr", "chapa", "hellocash", "other")
STATUSES = ("pending", "completed", "failed", "refunded")
RECONCILIATION_STATUSES = ("pending", "reconciled", "disputed")
UPDATABLE = ("notes", "reference_number", "failure_reason")


def completed_total(invoice_id):
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.invoice_id == invoice_id, Payment.status == "completed")
        .scalar()
    )
    return Decimal(str(total))


def _check_reference(organization_id, reference_number):
    if not reference_number:
        return
    existing = Payment.query.filter_by(
        organization_id=organization_id, reference_number=reference_number
    ).first()
    if existing is not None:
        raise ConflictError(
            f'Payment with reference number "{reference_number}" already exists (idempotency check failed)'
        )


def settle_invoice(invoice, paid_at=None):
    """Mark the invoice paid once completed payments cover its total."""
    if invoice is None or invoice.status in ("paid", "cancelled"):
        return False
    if completed_total(invoice.id) >= Decimal(str(invoice.total)):
        update_invoice_status(invoice, "paid", paid_at)
        logger.info("Invoice %s marked paid", invoice.invoice_number)
        return True
    return False


def create_payment(organization_id, data, created_by=None):
    tenant_id = to_int(data.get("tenant_id"), "tenant_id")
    resolve_reference(Tenant, tenant_id, organization_id, "Tenant")

    invoice = None
    invoice_id = to_int(data.get("invoice_id"), "invoice_id", allow_none=True)
    if invoice_id is not None:
        invoice = resolve_reference(Invoice, invoice_id, organization_id, "Invoice")
        if invoice.tenant_id != tenant_id:
            raise AccessDeniedError("Invoice does not belong to the same tenant")

    amount = to_decimal(data.get("amount"), "amount")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    method = require_choice(data.get("payment_method"), METHODS, "payment_method")
    status = require_choice(data.get("status") or "completed", STATUSES, "status")
    reference_number = (data.get("reference_number") or "").strip() or None
    _check_reference(organization_id, reference_number)

    payment = Payment(
        organization_id=organization_id,
        invoice_id=invoice_id,
        tenant_id=tenant_id,
        amount=amount,
        payment_method=method,
        payment_date=parse_datetime(data.get("payment_date"), "payment_date") or datetime.utcnow(),
        reference_number=reference_number,
        currency=data.get("currency") or "ETB",
        exchange_rate=to_decimal(data.get("exchange_rate"), "exchange_rate", allow_none=True),
        status=status,
        provider_response=data.get("provider_response"),
        provider_transaction_id=data.get("provider_transaction_id"),
        notes=data.get("notes"),
        receipt_url=data.get("receipt_url"),
        created_by=created_by,
    )
    db.session.add(payment)
    db.session.flush()
    if status == "completed":
        settle_invoice(invoice, payment.payment_date)
    db.session.commit()
    logger.info(
        "Payment recorded: %s amount=%s method=%s invoice=%s", payment.id, amount, method, invoice_id
    )
    return payment


def update_payment(payment, data):
    if payment.status != "pending":
        raise ValidationError("Only pending payments can be modified")
    for field in UPDATABLE:
        if field in data:
            setattr(payment, field, data[field])
    if "amount" in data:
        amount = to_decimal(data["amount"], "amount")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        payment.amount = amount
    if "payment_method" in data:
        payment.payment_method = require_choice(data["payment_method"], METHODS, "payment_method")
    if "status" in data:
        payment.status = require_choice(data["status"], STATUSES, "status")
        if payment.status == "completed":
            db.session.flush()
            settle_invoice(payment.invoice, payment.payment_date)
    db.session.commit()
    return payment


def refund_payment(payment, reason=None):
    if payment.status != "completed":
        raise ValidationError("Only completed payments can be refunded")
    payment.status = "refunded"
    if reason:
        payment.notes = f"{payment.notes}\nRefund: {reason}" if payment.notes else f"Refund: {reason}"
    db.session.flush()

    invoice = payment.invoice
    if invoice is not None and invoice.status == "paid":
        if completed_total(invoice.id) < Decimal(str(invoice.total)):
            update_invoice_status(invoice, "sent")
    db.session.commit()
    logger.info("Payment refunded: %s", payment.id)
    return payment


def reconcile_payment(payment, reconciliation_status):
    payment.reconciliation_status = require_choice(
        reconciliation_status, ("reconciled", "disputed"), "reconciliation_status"
    )
    db.session.commit()
    return payment


def list_payments_query(organization_id, tenant_id=None, invoice_id=None, status=None, method=None,
                        date_from=None, date_to=None):
    query = Payment.query.filter(Payment.organization_id == organization_id)
    if tenant_id:
        query = query.filter(Payment.tenant_id == tenant_id)
    if invoice_id:
        query = query.filter(Payment.invoice_id == invoice_id)
    if status:
        query = query.filter(Payment.status == status)
    if method:
        query = query.filter(Payment.payment_method == method)
    if date_from:
        query = query.filter(Payment.payment_date >= date_from)
    if date_to:
        query = query.filter(Payment.payment_date <= date_to)
    return query
