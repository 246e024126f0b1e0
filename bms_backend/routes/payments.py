from flask import Blueprint, jsonify, request

from ..models import Payment, PaymentIntent
from ..security import (
    current_context,
    current_organization_id,
    ensure_own,
    own_tenant_scope,
    require_permission,
)
from ..services import payment_intents as intents
from ..services import payments as svc
from ..services.common import get_for_org
from ..utils.parsing import get_json, paginate, parse_datetime

bp = Blueprint("payments", __name__)


# ---------------- Payments ----------------
@bp.get("/payments")
@require_permission("payments", "list", "list_all", "list_own")
def list_payments():
    query = svc.list_payments_query(
        current_organization_id(),
        tenant_id=own_tenant_scope("payments", request.args.get("tenant_id", type=int)),
        invoice_id=request.args.get("invoice_id", type=int),
        status=request.args.get("status"),
        method=request.args.get("payment_method"),
        date_from=parse_datetime(request.args.get("date_from"), "date_from"),
        date_to=parse_datetime(request.args.get("date_to"), "date_to"),
    )
    return jsonify(paginate(query, (Payment.payment_date.desc(), Payment.id.desc()), "payments")), 200


@bp.post("/payments")
@require_permission("payments", "create", "record")
def create_payment():
    data = get_json()
    payment = svc.create_payment(current_organization_id(data), data, created_by=current_context().user_id)
    return jsonify({"payment": payment.serialize()}), 201


@bp.get("/payments/<int:payment_id>")
@require_permission("payments", "read", "read_all", "read_own")
def get_payment(payment_id):
    payment = get_for_org(Payment, payment_id, current_organization_id(), "Payment")
    ensure_own("payments", payment, "Payment")
    return jsonify({"payment": payment.serialize()}), 200


@bp.get("/payments/<int:payment_id>/receipt")
@require_permission("payments", "read", "read_all", "read_own")
def payment_receipt(payment_id):
    payment = get_for_org(Payment, payment_id, current_organization_id(), "Payment")
    ensure_own("payments", payment, "Payment")
    invoice = payment.invoice
    return jsonify({
        "receipt": {
            "payment_id": payment.id,
            "reference_number": payment.reference_number,
            "amount": float(payment.amount),
            "currency": payment.currency,
            "payment_method": payment.payment_method,
            "payment_date": payment.payment_date.isoformat() if payment.payment_date else None,
            "status": payment.status,
            "tenant_id": payment.tenant_id,
            "invoice_number": invoice.invoice_number if invoice else None,
        }
    }), 200


@bp.put("/payments/<int:payment_id>")
@require_permission("payments", "update")
def update_payment(payment_id):
    data = get_json()
    payment = get_for_org(Payment, payment_id, current_organization_id(data), "Payment")
    return jsonify({"payment": svc.update_payment(payment, data).serialize()}), 200


@bp.post("/payments/<int:payment_id>/refund")
@require_permission("payments", "update")
def refund_payment(payment_id):
    data = get_json()
    payment = get_for_org(Payment, payment_id, current_organization_id(data), "Payment")
    return jsonify({"payment": svc.refund_payment(payment, data.get("reason")).serialize()}), 200


@bp.post("/payments/<int:payment_id>/reconcile")
@require_permission("payments", "reconcile")
def reconcile_payment(payment_id):
    data = get_json()
    payment = get_for_org(Payment, payment_id, current_organization_id(data), "Payment")
    payment = svc.reconcile_payment(payment, data.get("reconciliation_status") or "reconciled")
    return jsonify({"payment": payment.serialize()}), 200


# ---------------- Payment intents ----------------
@bp.get("/payment-intents")
@require_permission("payments", "list", "list_all", "list_own")
def list_payment_intents():
    query = intents.list_intents_query(
        current_organization_id(),
        status=request.args.get("status"),
        tenant_id=own_tenant_scope("payments", request.args.get("tenant_id", type=int)),
    )
    return jsonify(paginate(query, (PaymentIntent.created_at.desc(), PaymentIntent.id.desc()), "payment_intents")), 200


@bp.post("/payment-intents")
@require_permission("payments", "create", "create_own")
def create_payment_intent():
    ctx = current_context()
    data = get_json()
    if not ctx.can("payments", "create"):
        data["tenant_id"] = own_tenant_scope("payments")
    intent = intents.create_payment_intent(current_organization_id(data), data)
    return jsonify({"payment_intent": intent.serialize()}), 201


@bp.get("/payment-intents/by-reference/<reference>")
@require_permission("payments", "read", "read_all", "read_own")
def get_payment_intent_by_reference(reference):
    org_id = current_organization_id()
    intent = intents.find_intent_by_reference(reference)
    if intent is None or intent.organization_id != org_id:
        return jsonify({"error": "not_found", "message": "Payment intent not found"}), 404
    ensure_own("payments", intent, "Payment intent")
    return jsonify({"payment_intent": intent.serialize()}), 200


@bp.get("/payment-intents/<int:intent_id>")
@require_permission("payments", "read", "read_all", "read_own")
def get_payment_intent(intent_id):
    intent = get_for_org(PaymentIntent, intent_id, current_organization_id(), "Payment intent")
    ensure_own("payments", intent, "Payment intent")
    return jsonify({"payment_intent": intent.serialize()}), 200


@bp.post("/payment-intents/<int:intent_id>/cancel")
@require_permission("payments", "update", "create_own")
def cancel_payment_intent(intent_id):
    intent = get_for_org(PaymentIntent, intent_id, current_organization_id(get_json()), "Payment intent")
    if not current_context().can("payments", "update"):
        ensure_own("payments", intent, "Payment intent")
    return jsonify({"payment_intent": intents.cancel_payment_intent(intent).serialize()}), 200
