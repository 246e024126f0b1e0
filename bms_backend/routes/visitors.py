from datetime import datetime, time

from flask import Blueprint, jsonify, request

from ..models import VisitorLog
from ..security import current_context, current_organization_id, require_any_permission, require_permission
from ..security.permissions import REPORTING_VIEW_ACTIONS
from ..services import visitors as svc
from ..services.common import get_for_org
from ..services.visitor_analytics import get_visitor_analytics
from ..utils.parsing import arg_bool, get_json, paginate, parse_date, parse_datetime

bp = Blueprint("visitors", __name__)

ANALYTICS_PERMISSIONS = (("security", "read"),) + tuple(("reporting", a) for a in REPORTING_VIEW_ACTIONS)


def _date_range():
    start = parse_date(request.args.get("start_date"), "startDate")
    end = parse_date(request.args.get("end_date"), "endDate")
    if start is None and end is None:
        return None
    return (
        datetime.combine(start, time.min) if start else None,
        datetime.combine(end, time.max) if end else None,
    )


@bp.get("/visitor-logs")
@require_permission("security", "list", "list_all")
def list_visitor_logs():
    query = svc.list_visitor_logs_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        host_tenant_id=request.args.get("host_tenant_id", type=int),
        active=arg_bool("active"),
        start=parse_datetime(request.args.get("start"), "start"),
        end=parse_datetime(request.args.get("end"), "end"),
    )
    return jsonify(paginate(query, (VisitorLog.entry_time.desc(), VisitorLog.id.desc()), "visitor_logs")), 200


@bp.get("/visitor-logs/active")
@require_permission("security", "list", "list_all")
def active_visitors():
    query = svc.list_visitor_logs_query(
        current_organization_id(),
        building_id=request.args.get("building_id", type=int),
        active=True,
    )
    return jsonify(paginate(query, (VisitorLog.entry_time.desc(),), "visitor_logs")), 200


@bp.get("/visitor-logs/analytics")
@require_any_permission(*ANALYTICS_PERMISSIONS)
def visitor_analytics():
    period_months = request.args.get("period_months", 12, type=int)
    analytics = get_visitor_analytics(
        request.args.get("building_id", type=int),
        current_organization_id(),
        date_range=_date_range(),
        period_months=max(1, min(period_months, 36)),
    )
    return jsonify(analytics), 200


@bp.post("/visitor-logs")
@require_any_permission(("security", "log_entry"), ("security", "create"))
def create_visitor_log():
    data = get_json()
    log = svc.create_visitor_log(current_organization_id(data), data, logged_by=current_context().user_id)
    return jsonify({"visitor_log": log.serialize()}), 201


@bp.get("/visitor-logs/<int:log_id>")
@require_permission("security", "list", "list_all")
def get_visitor_log(log_id):
    log = get_for_org(VisitorLog, log_id, current_organization_id(), "Visitor log")
    return jsonify({"visitor_log": log.serialize()}), 200


@bp.put("/visitor-logs/<int:log_id>")
@require_permission("security", "update")
def update_visitor_log(log_id):
    data = get_json()
    log = get_for_org(VisitorLog, log_id, current_organization_id(data), "Visitor log")
    return jsonify({"visitor_log": svc.update_visitor_log(log, data).serialize()}), 200


@bp.post("/visitor-logs/<int:log_id>/exit")
@require_permission("security", "log_exit")
def log_exit(log_id):
    data = get_json()
    log = get_for_org(VisitorLog, log_id, current_organization_id(data), "Visitor log")
    return jsonify({"visitor_log": svc.log_visitor_exit(log, data.get("exit_time")).serialize()}), 200
