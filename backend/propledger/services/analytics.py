# backend/propledger/services/analytics.py
"""
Read-only financial rollups per property and per calendar month.

Nothing in this module writes; callers may retry freely.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import Integer, and_, cast, distinct, extract, func, select
from sqlalchemy.orm import Session

from ..domain.performance import (
    expected_yearly_rent,
    maintenance_category,
    maintenance_to_rent_ratio,
    months_back,
    occupancy_rate,
    payment_status,
    performance_rating,
)
from ..models import Appliance, MaintenanceRecord, Property, RentPayment

MIN_YEAR = 2000


def _today_utc_date() -> date:
    return datetime.utcnow().date()


def validate_year(year: Any, *, today: Optional[date] = None) -> int:
    today = today or _today_utc_date()
    try:
        y = int(year)
    except (TypeError, ValueError):
        raise ValueError("Invalid year parameter")
    if y < MIN_YEAR or y > today.year + 1:
        raise ValueError("Invalid year parameter")
    return y


def validate_property_id(property_id: Any) -> Optional[int]:
    if property_id is None:
        return None
    try:
        pid = int(property_id)
    except (TypeError, ValueError):
        raise ValueError("Invalid property_id parameter")
    if pid <= 0:
        raise ValueError("Invalid property_id parameter")
    return pid


def _year_window(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year + 1, 1, 1)


def _money(v: Any) -> float:
    return round(float(v or 0.0), 2)


def _owned_properties(db: Session, *, user_id: int, property_id: Optional[int] = None) -> list[Property]:
    q = select(Property).where(Property.user_id == user_id)
    if property_id is not None:
        q = q.where(Property.id == property_id)
    return list(db.scalars(q.order_by(Property.address, Property.id)).all())


def _rent_collected_expr():
    return RentPayment.amount + func.coalesce(RentPayment.late_fee_amount, 0)


def _completed_maintenance_in(start: date, end: date):
    return and_(
        MaintenanceRecord.status == "completed",
        MaintenanceRecord.maintenance_date >= start,
        MaintenanceRecord.maintenance_date < end,
    )


# -----------------------------
# Per-property
# -----------------------------
def compute_property_analytics(
    db: Session,
    *,
    user_id: int,
    year: int,
    today: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    One row per owned property for `year`, sorted by net_income desc then
    total_rent_collected desc.

    Rent counts amount + late fee of payments received in the year.
    Maintenance counts completed records dated in the year.
    """
    today = today or _today_utc_date()
    year = validate_year(year, today=today)
    start, end = _year_window(year)

    props = _owned_properties(db, user_id=user_id)
    if not props:
        return []
    prop_ids = [p.id for p in props]

    rent_rows = db.execute(
        select(
            RentPayment.property_id,
            func.coalesce(func.sum(_rent_collected_expr()), 0),
            func.coalesce(func.sum(RentPayment.late_fee_amount), 0),
            func.count(distinct(extract("month", RentPayment.payment_date))),
            func.max(RentPayment.payment_date),
        )
        .where(
            RentPayment.property_id.in_(prop_ids),
            RentPayment.payment_date >= start,
            RentPayment.payment_date < end,
        )
        .group_by(RentPayment.property_id)
    ).all()
    rent = {int(r[0]): r for r in rent_rows}

    maint_rows = db.execute(
        select(
            Appliance.property_id,
            func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0),
            func.count(MaintenanceRecord.id),
        )
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .where(Appliance.property_id.in_(prop_ids), _completed_maintenance_in(start, end))
        .group_by(Appliance.property_id)
    ).all()
    maint = {int(r[0]): r for r in maint_rows}

    recent_start = months_back(today, 6)
    recent_rows = db.execute(
        select(Appliance.property_id, func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0))
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .where(
            Appliance.property_id.in_(prop_ids),
            MaintenanceRecord.status == "completed",
            MaintenanceRecord.maintenance_date >= recent_start,
            MaintenanceRecord.maintenance_date <= today,
        )
        .group_by(Appliance.property_id)
    ).all()
    recent = {int(r[0]): float(r[1] or 0.0) for r in recent_rows}

    out: list[dict[str, Any]] = []
    for p in props:
        r = rent.get(p.id)
        m = maint.get(p.id)

        collected = _money(r[1]) if r else 0.0
        late_fees = _money(r[2]) if r else 0.0
        months_paid = int(r[3] or 0) if r else 0
        last_paid = r[4] if r else None

        maint_cost = _money(m[1]) if m else 0.0
        maint_count = int(m[2] or 0) if m else 0

        rate = occupancy_rate(collected, p.monthly_rent)
        ratio = maintenance_to_rent_ratio(maint_cost, p.monthly_rent)

        out.append(
            {
                "property_id": int(p.id),
                "property_address": p.address,
                "monthly_rent": p.monthly_rent,
                "total_rent_collected": collected,
                "total_late_fees": late_fees,
                "months_with_payments": months_paid,
                "expected_yearly_rent": expected_yearly_rent(p.monthly_rent),
                "last_payment_date": last_paid,
                "total_maintenance_cost": maint_cost,
                "maintenance_count": maint_count,
                "recent_maintenance_cost": _money(recent.get(p.id)),
                "maintenance_to_rent_ratio": ratio,
                "net_income": round(collected - maint_cost, 2),
                "occupancy_rate": rate,
                "maintenance_category": maintenance_category(ratio),
                "performance_rating": performance_rating(rate),
                "payment_status": payment_status(last_paid, today=today),
            }
        )

    out.sort(key=lambda x: (x["net_income"], x["total_rent_collected"]), reverse=True)
    return out


# -----------------------------
# Per-month
# -----------------------------
def compute_monthly_analytics(
    db: Session,
    *,
    user_id: int,
    year: int,
    property_id: Optional[int] = None,
    today: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    Dense series: exactly 12 rows per selected property, months 1..12,
    zero-filled where nothing happened. Rent and maintenance are bucketed
    separately and merged on (property, month), so a month with only one
    kind of activity still appears once.
    """
    year = validate_year(year, today=today)
    property_id = validate_property_id(property_id)
    start, end = _year_window(year)

    props = _owned_properties(db, user_id=user_id, property_id=property_id)
    if not props:
        return []
    prop_ids = [p.id for p in props]

    rent_month = cast(extract("month", RentPayment.payment_date), Integer)
    rent_rows = db.execute(
        select(
            RentPayment.property_id,
            rent_month,
            func.coalesce(func.sum(_rent_collected_expr()), 0),
            func.count(RentPayment.id),
        )
        .where(
            RentPayment.property_id.in_(prop_ids),
            RentPayment.payment_date >= start,
            RentPayment.payment_date < end,
        )
        .group_by(RentPayment.property_id, rent_month)
    ).all()

    maint_month = cast(extract("month", MaintenanceRecord.maintenance_date), Integer)
    maint_rows = db.execute(
        select(
            Appliance.property_id,
            maint_month,
            func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0),
            func.count(MaintenanceRecord.id),
        )
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .where(Appliance.property_id.in_(prop_ids), _completed_maintenance_in(start, end))
        .group_by(Appliance.property_id, maint_month)
    ).all()

    buckets: dict[tuple[int, int], dict[str, Any]] = {}
    for p in props:
        for m in range(1, 13):
            buckets[(p.id, m)] = {
                "property_id": int(p.id),
                "property_address": p.address,
                "month": m,
                "year": year,
                "rent_collected": 0.0,
                "maintenance_cost": 0.0,
                "net_income": 0.0,
                "payments_count": 0,
                "maintenance_count": 0,
                "expected_rent": float(p.monthly_rent or 0.0),
            }

    for pid, month, total, n in rent_rows:
        b = buckets[(int(pid), int(month))]
        b["rent_collected"] = _money(total)
        b["payments_count"] = int(n or 0)

    for pid, month, total, n in maint_rows:
        b = buckets[(int(pid), int(month))]
        b["maintenance_cost"] = _money(total)
        b["maintenance_count"] = int(n or 0)

    out = []
    for p in props:
        for m in range(1, 13):
            b = buckets[(p.id, m)]
            b["net_income"] = round(b["rent_collected"] - b["maintenance_cost"], 2)
            out.append(b)
    return out
