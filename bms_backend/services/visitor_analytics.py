"""Visitor statistics, trends and breakdowns over visitor logs."""
import math
from collections import Counter, defaultdict
from datetime import datetime

from dateutil.relativedelta import relativedelta

from ..extensions import db
from ..models import Tenant
from .visitors import list_visitor_logs_query


def round2(value):
    return math.floor(value * 100 + 0.5) / 100


def _percentage(count, total):
    return round2(count / total * 100) if total else 0


def _logs(building_id, organization_id, date_range=None):
    start, end = date_range if date_range else (None, None)
    return list_visitor_logs_query(organization_id, building_id=building_id, start=start, end=end).all()


def get_visitor_statistics(building_id, organization_id, date_range=None):
    logs = _logs(building_id, organization_id, date_range)
    durations = [log.duration_minutes for log in logs if log.exit_time is not None]
    total_duration = sum(durations)
    average = total_duration / len(durations) if durations else 0
    return {
        "total": len(logs),
        "active": len(logs) - len(durations),
        "average_visit_duration": round2(average),
        "total_visit_duration": round2(total_duration),
    }


def get_visitor_trends(building_id, organization_id, period_months=12, now=None):
    now = now or datetime.utcnow()
    logs = _logs(building_id, organization_id, (now - relativedelta(months=period_months), now))

    buckets = defaultdict(lambda: {"count": 0, "total": 0.0, "completed": 0})
    for log in logs:
        bucket = buckets[log.entry_time.strftime("%Y-%m")]
        bucket["count"] += 1
        if log.exit_time is not None:
            bucket["total"] += log.duration_minutes
            bucket["completed"] += 1

    return [
        {
            "period": period,
            "count": data["count"],
            "average_duration": round2(data["total"] / data["completed"]) if data["completed"] else 0,
        }
        for period, data in sorted(buckets.items())
    ]


def get_top_hosts(building_id, organization_id, date_range=None, limit=10):
    logs = _logs(building_id, organization_id, date_range)
    counts = Counter(log.host_tenant_id for log in logs)
    hosts = []
    for tenant_id, visit_count in counts.most_common(limit):
        tenant = db.session.get(Tenant, tenant_id)
        hosts.append({
            "tenant_id": tenant_id,
            "tenant_name": tenant.full_name if tenant else None,
            "visit_count": visit_count,
            "percentage": _percentage(visit_count, len(logs)),
        })
    return hosts


def get_visitor_by_purpose(building_id, organization_id, date_range=None):
    logs = _logs(building_id, organization_id, date_range)
    counts = Counter(log.purpose.strip() for log in logs)
    return [
        {"purpose": purpose, "count": count, "percentage": _percentage(count, len(logs))}
        for purpose, count in counts.most_common()
    ]


def get_visitor_by_time_of_day(building_id, organization_id, date_range=None):
    logs = _logs(building_id, organization_id, date_range)
    counts = Counter(log.entry_time.hour for log in logs)
    hours = [
        {"hour": hour, "count": counts.get(hour, 0), "percentage": _percentage(counts.get(hour, 0), len(logs))}
        for hour in range(24)
    ]
    # stable: ties keep hour order
    return sorted(hours, key=lambda h: -h["count"])


def get_visitor_analytics(building_id, organization_id, date_range=None, period_months=12, top_hosts_limit=10):
    return {
        "statistics": get_visitor_statistics(building_id, organization_id, date_range),
        "trends": get_visitor_trends(building_id, organization_id, period_months),
        "top_hosts": get_top_hosts(building_id, organization_id, date_range, top_hosts_limit),
        "by_purpose": get_visitor_by_purpose(building_id, organization_id, date_range),
        "by_time_of_day": get_visitor_by_time_of_day(building_id, organization_id, date_range),
    }
