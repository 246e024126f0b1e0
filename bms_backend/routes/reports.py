from datetime import datetime, time

from flask import Blueprint, jsonify, request

from ..security import current_context, current_organization_id, require_permission
from ..security.permissions import REPORTING_VIEW_ACTIONS
from ..services.reports import financial_report, occupancy_report, operational_report
from ..utils.parsing import parse_date

bp = Blueprint("reports", __name__)


@bp.get("/reports/financial")
@require_permission()
def financial():
    ctx = current_context()
    allowed = (ctx.can("invoices", "read") and ctx.can("payments", "read")) or ctx.can(
        "reporting", *REPORTING_VIEW_ACTIONS
    )
    if not allowed:
        return jsonify({"error": "forbidden", "message": "Access denied: requires financial reporting"}), 403

    start = parse_date(request.args.get("start_date"), "startDate")
    end = parse_date(request.args.get("end_date"), "endDate")
    report = financial_report(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        start_date=datetime.combine(start, time.min) if start else None,
        end_date=datetime.combine(end, time.max) if end else None,
    )
    return jsonify(report), 200


@bp.get("/reports/occupancy")
@require_permission("units", "read", "read_all")
def occupancy():
    report = occupancy_report(current_organization_id(), building_id=request.args.get("building_id", type=int))
    return jsonify(report), 200


@bp.get("/reports/operational")
@require_permission("complaints", "read", "read_all")
def operational():
    start = parse_date(request.args.get("start_date"), "startDate")
    end = parse_date(request.args.get("end_date"), "endDate")
    report = operational_report(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        start_date=datetime.combine(start, time.min) if start else None,
        end_date=datetime.combine(end, time.max) if end else None,
    )
    return jsonify(report), 200
