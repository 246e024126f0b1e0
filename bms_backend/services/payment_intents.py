import logging
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Invoice, PaymentIntent, Tenant
from ..providers import PROVIDERS, get_payment_provider
from ..utils.notifications import send_payment_confirmation
from ..utils.parsing import to_decimal, to_int
from .common import require_choice, resolve_reference
from .payments import create_payment

logger = logging.getLogger(__name__)

STATUSES = ("pending", "processing", "completed", "failed", "cancelled")
AMOUNT_TOLERANCE = Decimal("0.01")


def create_payment_intent(organization_id, data):
    tenant_id = to_int(data.get("tenant_id"), "tenant_id")
    resolve_reference(Tenant, tenant_id, organization_id, "Tenant")
    provider_name = require_choice(data.get("provider"), PROVIDERS, "provider")

    amount = to_decimal(data.get("amount"), "amount")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")

    invoice_id = to_int(data.get("invoice_id"), "invoice_id", allow_none=True)
    if invoice_id is not None:
        invoice = resolve_reference(Invoice, invoice_id, organization_id, "Invoice")
        if invoice.tenant_id != tenant_id:
            raise AccessDeniedError("Invoice does not belong to the same tenant")
        if abs(amount - Decimal(str(invoice.total))) > AMOUNT_TOLERANCE:
            raise ValidationError(
                f"Payment amount ({float(amount)}) does not match invoice total ({float(invoice.total)})"
            )

    ttl = int(current_app.config.get("PAYMENT_INTENT_TTL_MINUTES", 30))
    intent = PaymentIntent(
        organization_id=organization_id,
        invoice_id=invoice_id,
        tenant_id=tenant_id,
        amount=amount,
        currency=data.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "ETB"),
        provider=provider_name,
        status="pending",
        expires_at=datetime.utcnow() + timedelta(minutes=ttl),
    )
    db.session.add(intent)
    db.session.flush()

    provider = get_payment_provider(provider_name)
    try:
        result = provider.initiate_payment(intent)
    except ValidationError:
        db.session.rollback()
        raise

    intent.redirect_url = result.redirect_url
    intent.payment_instructions = result.payment_instructions
    intent.reference_number = result.reference_number
    intent.provider_metadata = result.metadata
    if result.redirect_url or result.payment_instructions:
        intent.status = "processing"
    db.session.commit()
    logger.info("Payment intent %s created via %s ref=%s", intent.id, provider_name, intent.reference_number)
    return intent


def find_intent_by_reference(reference_number, provider=None):
    query = PaymentIntent.query.filter_by(reference_number=reference_number)
    if provider:
        query = query.filter_by(provider=provider)
    return query.order_by(PaymentIntent.id.desc()).first()


def cancel_payment_intent(intent):
    if intent.status not in ("pending", "processing"):
        raise ValidationError("Only pending or processing payment intents can be cancelled")
    intent.status = "cancelled"
    db.session.commit()
    return intent


def expire_stale_intents(now=None):
    now = now or datetime.utcnow()
    stale = PaymentIntent.query.filter(
        PaymentIntent.status.in_(("pending", "processing")),
        PaymentIntent.expires_at < now,
    ).all()
    for intent in stale:
        intent.status = "failed"
    db.session.commit()
    if stale:
        logger.info("Expired %d stale payment intents", len(stale))
    return len(stale)


def list_intents_query(organization_id, status=None, tenant_id=None):
    query = PaymentIntent.query.filter(PaymentIntent.organization_id == organization_id)
    if status:
        query = query.filter(PaymentIntent.status == status)
    if tenant_id:
        query = query.filter(PaymentIntent.tenant_id == tenant_id)
    return query


# ---------------- Webhooks ----------------
CHAPA_REFERENCE_KEYS = ("tx_ref", "reference")
REFERENCE_KEYS = ("reference", "transactionId", "paymentReference", "ref")


def extract_reference(provider_name, payload):
    keys = CHAPA_REFERENCE_KEYS if provider_name == "chapa" else REFERENCE_KEYS
    for key in keys:
        if payload.get(key):
            return str(payload[key])
    return None


def process_webhook(provider_name, payload):
    """Verify a provider callback and settle the matching intent.

    Returns the response body; raises for unknown providers, missing
    references and unknown intents.
    """
    provider = get_payment_provider(provider_name)
    reference = extract_reference(provider_name, payload)
    if not reference:
        raise ValidationError("Missing payment reference in webhook payload")

    intent = find_intent_by_reference(reference, provider_name)
    if intent is None:
        raise NotFoundError("Payment intent not found")
    if intent.status == "completed":
        return {"message": "Payment already processed", "intent_id": intent.id, "status": "completed"}

    verification = provider.verify_payment(reference, payload)
    if not verification.success:
        intent.status = "failed"
        intent.provider_metadata = {**(intent.provider_metadata or {}), "error": verification.error}
        db.session.commit()
        logger.warning("Webhook verification failed for intent %s: %s", intent.id, verification.error)
        return {"message": "Payment verification failed", "intent_id": intent.id, "status": "failed"}

    amount = verification.amount if verification.amount is not None else intent.amount
    intent.status = "completed"
    intent.provider_metadata = {**(intent.provider_metadata or {}), "verification": verification.metadata}
    payment = create_payment(
        intent.organization_id,
        {
            "tenant_id": intent.tenant_id,
            "invoice_id": intent.invoice_id,
            "amount": amount,
            "payment_method": provider_name,
            "reference_number": reference,
            "currency": intent.currency,
            "status": "completed",
            "provider_response": payload,
            "provider_transaction_id": verification.transaction_id,
        },
    )
    base_url = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    payment.receipt_url = f"{base_url}/api/payments/{payment.id}/receipt"
    db.session.commit()
    logger.info("Webhook processed: intent %s -> payment %s", intent.id, payment.id)
    outcome = send_payment_confirmation(payment)
    if not outcome["success"]:
        logger.warning("Payment confirmation for payment %s not delivered: %s", payment.id, outcome["errors"])
    return {
        "message": "Payment processed successfully",
        "intent_id": intent.id,
        "payment_id": payment.id,
        "status": "completed",
    }
