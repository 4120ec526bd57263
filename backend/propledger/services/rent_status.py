# backend/propledger/services/rent_status.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..domain.performance import rent_status
from ..models import Property, RentPayment


def _today_utc_date() -> date:
    return datetime.utcnow().date()


def _sum_amount(db: Session, *, property_id: int, start: date, end: date) -> float:
    s = db.scalar(
        select(func.coalesce(func.sum(RentPayment.amount), 0.0)).where(
            RentPayment.property_id == property_id,
            RentPayment.payment_date >= start,
            RentPayment.payment_date < end,
        )
    )
    return round(float(s or 0.0), 2)


def _next_month(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def compute_rent_status(db: Session, *, user_id: int, today: Optional[date] = None) -> list[dict[str, Any]]:
    """
    Per-property rent board, ordered by address. Collected totals count the
    payment amount only (late fees excluded).
    """
    today = today or _today_utc_date()
    month_start = date(today.year, today.month, 1)
    year_start = date(today.year, 1, 1)

    props = db.scalars(select(Property).where(Property.user_id == user_id).order_by(Property.address, Property.id)).all()

    out: list[dict[str, Any]] = []
    for p in props:
        last = db.scalar(
            select(RentPayment)
            .where(RentPayment.property_id == p.id)
            .order_by(desc(RentPayment.payment_date), desc(RentPayment.id))
            .limit(1)
        )
        last_date = last.payment_date if last else None

        out.append(
            {
                "property_id": int(p.id),
                "property_address": p.address,
                "monthly_rent": p.monthly_rent,
                "last_payment_date": last_date,
                "last_payment_amount": float(last.amount) if last else None,
                "total_collected_this_month": _sum_amount(
                    db, property_id=p.id, start=month_start, end=_next_month(month_start)
                ),
                "total_collected_this_year": _sum_amount(
                    db, property_id=p.id, start=year_start, end=date(today.year + 1, 1, 1)
                ),
                "days_since_last_payment": (today - last_date).days if last_date else None,
                "rent_status": rent_status(p.monthly_rent, last_date, today=today),
            }
        )
    return out
