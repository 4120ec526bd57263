# backend/propledger/services/dashboard_rollups.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import Integer, case, cast, desc, distinct, extract, func, or_, select
from sqlalchemy.orm import Session

from ..domain.appliance_status import ACTIVE_ISSUE_STATUSES
from ..domain.performance import months_back
from ..models import Appliance, Issue, MaintenanceRecord, Property

TIME_RANGES = {"3months": 3, "6months": 6, "12months": 12}
DEFAULT_TIME_RANGE = "6months"

BROKEN_STATUSES = ("needs_repair", "out_of_service")
UPCOMING_DAYS = 30


@dataclass(frozen=True)
class DashboardOverview:
    total_properties: int
    total_appliances: int
    broken_appliances: int
    open_issues: int
    critical_issues: int
    total_maintenance_records: int
    total_maintenance_cost: float
    average_cost_per_maintenance: float
    overdue_maintenance_count: int
    upcoming_maintenance_count: int
    items_needing_attention: int


def _today_utc_date() -> date:
    return datetime.utcnow().date()


def window_start(time_range: str, *, today: date) -> date:
    """First day of the month `n` months before today's month."""
    n = TIME_RANGES.get(time_range)
    if n is None:
        raise ValueError(f"time_range must be one of {', '.join(TIME_RANGES)}")
    return months_back(today, n).replace(day=1)


def _paid():
    return (MaintenanceRecord.cost.is_not(None)) & (MaintenanceRecord.cost > 0)


def _overview(db: Session, *, user_id: int, start: date, today: date) -> DashboardOverview:
    total_properties = db.scalar(select(func.count(Property.id)).where(Property.user_id == user_id)) or 0

    total_appliances, broken = db.execute(
        select(
            func.count(Appliance.id),
            func.coalesce(func.sum(case((Appliance.status.in_(BROKEN_STATUSES), 1), else_=0)), 0),
        )
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == user_id)
    ).one()

    open_issues, critical = db.execute(
        select(
            func.count(Issue.id),
            func.coalesce(func.sum(case((Issue.urgency == "critical", 1), else_=0)), 0),
        )
        .join(Appliance, Appliance.id == Issue.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == user_id, Issue.status.in_(ACTIVE_ISSUE_STATUSES))
    ).one()

    n_records, total_cost, paid_count, paid_sum = db.execute(
        select(
            func.count(MaintenanceRecord.id),
            func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0),
            func.coalesce(func.sum(case((_paid(), 1), else_=0)), 0),
            func.coalesce(func.sum(case((_paid(), MaintenanceRecord.cost), else_=0)), 0),
        )
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == user_id, MaintenanceRecord.maintenance_date >= start)
    ).one()

    def _count_due(*conds) -> int:
        return int(
            db.scalar(
                select(func.count(MaintenanceRecord.id))
                .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
                .join(Property, Property.id == Appliance.property_id)
                .where(Property.user_id == user_id, MaintenanceRecord.next_due_date.is_not(None), *conds)
            )
            or 0
        )

    overdue = _count_due(MaintenanceRecord.next_due_date < today)
    upcoming = _count_due(
        MaintenanceRecord.next_due_date >= today,
        MaintenanceRecord.next_due_date <= today + timedelta(days=UPCOMING_DAYS),
    )

    paid_count = int(paid_count or 0)
    return DashboardOverview(
        total_properties=int(total_properties),
        total_appliances=int(total_appliances or 0),
        broken_appliances=int(broken or 0),
        open_issues=int(open_issues or 0),
        critical_issues=int(critical or 0),
        total_maintenance_records=int(n_records or 0),
        total_maintenance_cost=round(float(total_cost or 0.0), 2),
        average_cost_per_maintenance=round(float(paid_sum or 0.0) / paid_count, 2) if paid_count else 0.0,
        overdue_maintenance_count=overdue,
        upcoming_maintenance_count=upcoming,
        items_needing_attention=int(broken or 0) + int(open_issues or 0) + overdue,
    )


def _recent_maintenance(db: Session, *, user_id: int, limit: int = 10) -> list[dict[str, Any]]:
    rows = db.execute(
        select(MaintenanceRecord, Appliance.name, Property.address)
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == user_id)
        .order_by(desc(MaintenanceRecord.maintenance_date), desc(MaintenanceRecord.created_at))
        .limit(limit)
    ).all()
    return [
        {
            "id": int(r.id),
            "appliance_name": name,
            "property_address": address,
            "maintenance_type": r.maintenance_type,
            "cost": float(r.cost or 0.0),
            "maintenance_date": r.maintenance_date,
            "status": r.status,
        }
        for r, name, address in rows
    ]


def _expensive_appliances(db: Session, *, user_id: int, start: date, limit: int = 10) -> list[dict[str, Any]]:
    total = func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0)
    paid_count = func.sum(case((_paid(), 1), else_=0))
    rows = db.execute(
        select(Appliance.name, Property.address, total.label("total"), paid_count.label("paid_count"))
        .join(Property, Property.id == Appliance.property_id)
        .join(MaintenanceRecord, MaintenanceRecord.appliance_id == Appliance.id)
        .where(Property.user_id == user_id, MaintenanceRecord.maintenance_date >= start)
        .group_by(Appliance.id, Appliance.name, Property.address)
        .having(paid_count > 0)
        .order_by(desc("total"))
        .limit(limit)
    ).all()
    return [
        {
            "appliance_name": name,
            "property_address": address,
            "total_maintenance_cost": round(float(t or 0.0), 2),
            "maintenance_count": int(n or 0),
        }
        for name, address, t, n in rows
    ]


def _properties_needing_attention(db: Session, *, user_id: int, today: date, limit: int = 5) -> list[dict[str, Any]]:
    open_n = func.count(distinct(Issue.id))
    critical_n = func.count(distinct(case((Issue.urgency == "critical", Issue.id))))
    overdue_n = func.count(distinct(MaintenanceRecord.id))

    rows = db.execute(
        select(Property.address, open_n, critical_n, overdue_n)
        .outerjoin(Appliance, Appliance.property_id == Property.id)
        .outerjoin(Issue, (Issue.appliance_id == Appliance.id) & Issue.status.in_(ACTIVE_ISSUE_STATUSES))
        .outerjoin(
            MaintenanceRecord,
            (MaintenanceRecord.appliance_id == Appliance.id) & (MaintenanceRecord.next_due_date < today),
        )
        .where(Property.user_id == user_id)
        .group_by(Property.id, Property.address)
        .having(or_(open_n > 0, overdue_n > 0))
    ).all()

    out = [
        {
            "property_address": address,
            "open_issues_count": int(o or 0),
            "critical_issues_count": int(c or 0),
            "overdue_maintenance_count": int(d or 0),
            "total_issues": int(o or 0) + int(d or 0),
        }
        for address, o, c, d in rows
    ]
    out.sort(key=lambda x: (x["critical_issues_count"], x["total_issues"]), reverse=True)
    return out[:limit]


def _monthly_spending(db: Session, *, user_id: int, start: date, limit: int = 6) -> list[dict[str, Any]]:
    y = cast(extract("year", MaintenanceRecord.maintenance_date), Integer)
    m = cast(extract("month", MaintenanceRecord.maintenance_date), Integer)
    rows = db.execute(
        select(
            y,
            m,
            func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0),
            func.coalesce(func.sum(case((_paid(), 1), else_=0)), 0),
        )
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == user_id, MaintenanceRecord.maintenance_date >= start)
        .group_by(y, m)
        .order_by(desc(y), desc(m))
        .limit(limit)
    ).all()

    # newest-first from SQL, charted oldest-first
    return [
        {
            "month": date(int(yy), int(mm), 1).strftime("%b %Y"),
            "total_cost": round(float(total or 0.0), 2),
            "maintenance_count": int(n or 0),
        }
        for yy, mm, total, n in reversed(rows)
    ]


def compute_dashboard(
    db: Session,
    *,
    user_id: int,
    time_range: str = DEFAULT_TIME_RANGE,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """
    Landing-page rollups for one owner. time_range bounds the cost figures,
    expensive appliances and monthly spending; issue and due-date counts are
    always current.
    """
    today = today or _today_utc_date()
    start = window_start(time_range, today=today)

    return {
        "time_range": time_range,
        "window_start": start,
        "overview": asdict(_overview(db, user_id=user_id, start=start, today=today)),
        "recent_maintenance": _recent_maintenance(db, user_id=user_id),
        "expensive_appliances": _expensive_appliances(db, user_id=user_id, start=start),
        "properties_needing_attention": _properties_needing_attention(db, user_id=user_id, today=today),
        "monthly_spending": _monthly_spending(db, user_id=user_id, start=start),
    }
