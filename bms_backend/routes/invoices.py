from flask import Blueprint, jsonify, request

from ..models import Invoice
from ..security import (
    current_context,
    current_organization_id,
    ensure_own,
    own_tenant_scope,
    require_permission,
)
from ..services import invoices as svc
from ..services.common import get_for_org
from ..services.invoice_generation import generate_invoices_for_leases, generate_monthly_invoices
from ..utils.notifications import send_invoice_to_tenant
from ..utils.parsing import get_json, paginate, parse_date, to_bool

bp = Blueprint("invoices", __name__)


@bp.get("/invoices")
@require_permission("invoices", "list", "list_all", "list_own")
def list_invoices():
    query = svc.list_invoices_query(
        current_organization_id(),
        status=request.args.get("status"),
        tenant_id=own_tenant_scope("invoices", request.args.get("tenant_id", type=int)),
        lease_id=request.args.get("lease_id", type=int),
        unit_id=request.args.get("unit_id", type=int),
        due_from=parse_date(request.args.get("due_from"), "due_from"),
        due_to=parse_date(request.args.get("due_to"), "due_to"),
    )
    return jsonify(paginate(query, (Invoice.due_date.desc(), Invoice.id.desc()), "invoices")), 200


@bp.post("/invoices")
@require_permission("invoices", "create")
def create_invoice():
    data = get_json()
    invoice = svc.create_invoice(current_organization_id(data), data)
    return jsonify({"invoice": invoice.serialize()}), 201


@bp.post("/invoices/ad-hoc")
@require_permission("invoices", "create")
def create_ad_hoc_invoice():
    data = get_json()
    invoice = svc.create_ad_hoc_invoice(current_organization_id(data), data)
    return jsonify({"invoice": invoice.serialize()}), 201


@bp.post("/invoices/generate")
@require_permission("invoices", "create")
def generate_invoices():
    data = get_json()
    results = generate_invoices_for_leases(
        current_organization_id(data),
        data.get("period_start"),
        data.get("period_end"),
        force_regenerate=to_bool(data.get("force_regenerate"), "force_regenerate"),
    )
    successful = sum(1 for r in results if r["success"])
    return jsonify({
        "results": results,
        "summary": {"total": len(results), "successful": successful, "failed": len(results) - successful},
    }), 200


@bp.post("/invoices/generate-monthly")
@require_permission("invoices", "create")
def generate_monthly():
    ctx = current_context()
    data = get_json()
    if ctx.is_super_admin and data.get("organization_id") is None and request.args.get("organization_id") is None:
        org_id = None
    else:
        org_id = current_organization_id(data)
    results = generate_monthly_invoices(
        organization_id=org_id,
        period_start=data.get("period_start"),
        period_end=data.get("period_end"),
        auto_send=to_bool(data.get("auto_send"), "auto_send", default=True),
        force_regenerate=to_bool(data.get("force_regenerate"), "force_regenerate"),
    )
    return jsonify({"organizations": results}), 200


@bp.get("/invoices/overdue")
@require_permission("invoices", "list", "list_all")
def overdue_invoices():
    invoices = svc.find_overdue_invoices(current_organization_id(), parse_date(request.args.get("as_of"), "as_of"))
    return jsonify({"total": len(invoices), "invoices": [i.serialize() for i in invoices]}), 200


@bp.post("/invoices/mark-overdue")
@require_permission("invoices", "update")
def mark_overdue():
    data = get_json()
    invoices = svc.mark_overdue_invoices(current_organization_id(data), parse_date(data.get("as_of"), "as_of"))
    return jsonify({"marked": len(invoices), "invoice_ids": [i.id for i in invoices]}), 200


@bp.get("/invoices/<int:invoice_id>")
@require_permission("invoices", "read", "read_all", "read_own")
def get_invoice(invoice_id):
    invoice = get_for_org(Invoice, invoice_id, current_organization_id(), "Invoice")
    ensure_own("invoices", invoice, "Invoice")
    return jsonify({"invoice": invoice.serialize()}), 200


@bp.put("/invoices/<int:invoice_id>")
@require_permission("invoices", "update")
def update_invoice(invoice_id):
    data = get_json()
    invoice = get_for_org(Invoice, invoice_id, current_organization_id(data), "Invoice")
    return jsonify({"invoice": svc.update_invoice(invoice, data).serialize()}), 200


@bp.patch("/invoices/<int:invoice_id>/status")
@require_permission("invoices", "update")
def update_invoice_status(invoice_id):
    data = get_json()
    invoice = get_for_org(Invoice, invoice_id, current_organization_id(data), "Invoice")
    invoice = svc.update_invoice(invoice, {"status": data.get("status"), "paid_at": data.get("paid_at")})
    return jsonify({"invoice": invoice.serialize()}), 200


@bp.post("/invoices/<int:invoice_id>/cancel")
@require_permission("invoices", "update")
def cancel_invoice(invoice_id):
    invoice = get_for_org(Invoice, invoice_id, current_organization_id(get_json()), "Invoice")
    return jsonify({"invoice": svc.cancel_invoice(invoice).serialize()}), 200


@bp.post("/invoices/<int:invoice_id>/send")
@require_permission("invoices", "send")
def send_invoice(invoice_id):
    invoice = get_for_org(Invoice, invoice_id, current_organization_id(get_json()), "Invoice")
    outcome = send_invoice_to_tenant(invoice)
    status = 200 if outcome["success"] else 502
    return jsonify({**outcome, "invoice": invoice.serialize()}), status


@bp.delete("/invoices/<int:invoice_id>")
@require_permission("invoices", "delete")
def delete_invoice(invoice_id):
    invoice = get_for_org(Invoice, invoice_id, current_organization_id(), "Invoice")
    svc.delete_invoice(invoice)
    return jsonify({"message": "Invoice deleted"}), 200


@bp.post("/invoices/payment-reminders")
@require_permission("invoices", "send")
def payment_reminders():
    data = get_json()
    result = svc.process_payment_reminders(current_organization_id(data), parse_date(data.get("as_of"), "as_of"))
    return jsonify(result), 200
