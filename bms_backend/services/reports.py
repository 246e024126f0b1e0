import logging
from collections import OrderedDict
from datetime import datetime

from dateutil.relativedelta import relativedelta

from ..errors import ValidationError
from ..models import Building, Complaint, Invoice, Payment, Unit, WorkOrder
from .common import resolve_reference
from .invoices import find_overdue_invoices

logger = logging.getLogger(__name__)


def _in_window(day, start, end):
    if start and day < start.date():
        return False
    if end and day > end.date():
        return False
    return True


def financial_report(organization_id, building_id=None, start_date=None, end_date=None):
    if start_date and end_date and end_date < start_date:
        raise ValidationError("endDate must be after startDate")

    unit_ids = None
    if building_id:
        resolve_reference(Building, building_id, organization_id, "Building")
        unit_ids = [u.id for u in Unit.query.filter_by(building_id=building_id).all()]

    payments_query = Payment.query.filter(
        Payment.organization_id == organization_id, Payment.status == "completed"
    )
    if start_date:
        payments_query = payments_query.filter(Payment.payment_date >= start_date)
    if end_date:
        payments_query = payments_query.filter(Payment.payment_date <= end_date)
    if unit_ids is not None:
        payments_query = payments_query.join(Invoice, Payment.invoice_id == Invoice.id).filter(
            Invoice.unit_id.in_(unit_ids)
        )
    payments = payments_query.all()

    total_revenue = sum(float(p.amount) for p in payments)
    breakdown = OrderedDict()
    for payment in payments:
        entry = breakdown.setdefault(payment.payment_method, {"count": 0, "total": 0.0})
        entry["count"] += 1
        entry["total"] += float(payment.amount)

    unpaid_query = Invoice.query.filter(
        Invoice.organization_id == organization_id, Invoice.status.in_(("sent", "overdue"))
    )
    if unit_ids is not None:
        unpaid_query = unpaid_query.filter(Invoice.unit_id.in_(unit_ids))
    unpaid = unpaid_query.all()
    outstanding = sum(float(i.total) for i in unpaid)

    overdue = [
        inv for inv in find_overdue_invoices(organization_id)
        if (unit_ids is None or inv.unit_id in unit_ids) and _in_window(inv.due_date, start_date, end_date)
    ]

    trends = []
    if start_date and end_date:
        revenue_by_month, count_by_month, receivables_by_month = {}, {}, {}
        for payment in payments:
            month = payment.payment_date.strftime("%Y-%m")
            revenue_by_month[month] = revenue_by_month.get(month, 0.0) + float(payment.amount)
            count_by_month[month] = count_by_month.get(month, 0) + 1
        for invoice in unpaid:
            month = invoice.due_date.strftime("%Y-%m")
            receivables_by_month[month] = receivables_by_month.get(month, 0.0) + float(invoice.total)

        cursor = start_date
        while cursor <= end_date:
            month = cursor.strftime("%Y-%m")
            trends.append({
                "month": month,
                "revenue": revenue_by_month.get(month, 0),
                "receivables": receivables_by_month.get(month, 0),
                "payments_count": count_by_month.get(month, 0),
            })
            cursor += relativedelta(months=1)

    return {
        "period": {
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
        },
        "building_id": building_id,
        "total_revenue": total_revenue,
        "outstanding_receivables": outstanding,
        "overdue_amount": sum(float(i.total) for i in overdue),
        "payment_breakdown": [
            {
                "method": method,
                "count": data["count"],
                "total": data["total"],
                "percentage": data["total"] / total_revenue * 100 if total_revenue > 0 else 0,
            }
            for method, data in breakdown.items()
        ],
        "monthly_trends": trends,
        "summary": {
            "total_payments": len(payments),
            "total_unpaid_invoices": len(unpaid),
            "total_overdue_invoices": len(overdue),
        },
    }


def occupancy_report(organization_id, building_id=None):
    buildings_query = Building.query.filter(Building.organization_id == organization_id)
    if building_id:
        resolve_reference(Building, building_id, organization_id, "Building")
        buildings_query = buildings_query.filter(Building.id == building_id)

    rows = []
    totals = {"total_units": 0, "occupied": 0, "available": 0, "maintenance": 0, "reserved": 0}
    for building in buildings_query.order_by(Building.name).all():
        counts = {"occupied": 0, "available": 0, "maintenance": 0, "reserved": 0}
        units = Unit.query.filter_by(building_id=building.id).all()
        for unit in units:
            if unit.status in counts:
                counts[unit.status] += 1
        row = {
            "building_id": building.id,
            "building_name": building.name,
            "total_units": len(units),
            **counts,
            "occupancy_rate": round(counts["occupied"] / len(units) * 100, 2) if units else 0,
        }
        rows.append(row)
        totals["total_units"] += len(units)
        for key in counts:
            totals[key] += counts[key]

    totals["occupancy_rate"] = (
        round(totals["occupied"] / totals["total_units"] * 100, 2) if totals["total_units"] else 0
    )
    return {"buildings": rows, "totals": totals, "generated_at": datetime.utcnow().isoformat()}


def _counts(records, attr):
    counts = OrderedDict()
    for record in records:
        value = getattr(record, attr)
        counts[value] = counts.get(value, 0) + 1
    return counts


def _monthly(records, start_date, end_date, done):
    by_month = {}
    for record in records:
        month = record.created_at.strftime("%Y-%m")
        entry = by_month.setdefault(month, [0, 0])
        entry[0] += 1
        if done(record):
            entry[1] += 1
    trends = []
    cursor = start_date
    while cursor <= end_date:
        month = cursor.strftime("%Y-%m")
        trends.append((month, *by_month.get(month, (0, 0))))
        cursor += relativedelta(months=1)
    return trends


def operational_report(organization_id, building_id=None, start_date=None, end_date=None):
    """Complaint and work-order throughput for the organization or one building."""
    if start_date and end_date and end_date < start_date:
        raise ValidationError("endDate must be after startDate")

    complaints_query = Complaint.query.filter(Complaint.organization_id == organization_id)
    work_orders_query = WorkOrder.query.filter(WorkOrder.organization_id == organization_id)
    if building_id:
        resolve_reference(Building, building_id, organization_id, "Building")
        unit_ids = [u.id for u in Unit.query.filter_by(building_id=building_id).all()]
        complaints_query = complaints_query.filter(Complaint.unit_id.in_(unit_ids))
        work_orders_query = work_orders_query.filter(WorkOrder.building_id == building_id)
    if start_date:
        complaints_query = complaints_query.filter(Complaint.created_at >= start_date)
        work_orders_query = work_orders_query.filter(WorkOrder.created_at >= start_date)
    if end_date:
        complaints_query = complaints_query.filter(Complaint.created_at <= end_date)
        work_orders_query = work_orders_query.filter(WorkOrder.created_at <= end_date)
    complaints = complaints_query.all()
    work_orders = work_orders_query.all()

    resolved = [c for c in complaints if c.resolved_at and c.created_at]
    average_days = 0
    if resolved:
        total_seconds = sum((c.resolved_at - c.created_at).total_seconds() for c in resolved)
        average_days = round(total_seconds / len(resolved) / 86400, 2)
    completed = [wo for wo in work_orders if wo.status == "completed"]
    completion_rate = round(len(completed) / len(work_orders) * 100, 2) if work_orders else 0

    complaint_trends, work_order_trends = [], []
    if start_date and end_date:
        complaint_trends = [
            {"month": month, "count": count, "resolved": done}
            for month, count, done in _monthly(complaints, start_date, end_date, lambda c: c.resolved_at is not None)
        ]
        work_order_trends = [
            {"month": month, "count": count, "completed": done}
            for month, count, done in _monthly(work_orders, start_date, end_date, lambda wo: wo.status == "completed")
        ]

    return {
        "period": {
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
        },
        "building_id": building_id,
        "complaints": {
            "total": len(complaints),
            "by_status": [{"status": k, "count": v} for k, v in _counts(complaints, "status").items()],
            "by_category": [{"category": k, "count": v} for k, v in _counts(complaints, "category").items()],
            "average_resolution_days": average_days,
            "resolved_count": len(resolved),
            "trends": complaint_trends,
        },
        "work_orders": {
            "total": len(work_orders),
            "by_status": [{"status": k, "count": v} for k, v in _counts(work_orders, "status").items()],
            "by_priority": [{"priority": k, "count": v} for k, v in _counts(work_orders, "priority").items()],
            "completion_rate": completion_rate,
            "completed_count": len(completed),
            "trends": work_order_trends,
        },
        "summary": {
            "total_complaints": len(complaints),
            "total_work_orders": len(work_orders),
            "open_complaints": sum(1 for c in complaints if c.status == "open"),
            "open_work_orders": sum(1 for wo in work_orders if wo.status == "open"),
        },
    }
