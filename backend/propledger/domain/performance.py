# backend/propledger/domain/performance.py
from __future__ import annotations

from datetime import date
from typing import Optional


def expected_yearly_rent(monthly_rent: Optional[float]) -> Optional[float]:
    if monthly_rent is None or float(monthly_rent) <= 0:
        return None
    return float(monthly_rent) * 12


def occupancy_rate(total_rent_collected: float, monthly_rent: Optional[float]) -> Optional[float]:
    """Percent of the annualized rent that was actually collected."""
    expected = expected_yearly_rent(monthly_rent)
    if expected is None:
        return None
    return round(float(total_rent_collected) / expected * 100, 2)


def maintenance_to_rent_ratio(total_maintenance_cost: float, monthly_rent: Optional[float]) -> Optional[float]:
    expected = expected_yearly_rent(monthly_rent)
    if expected is None:
        return None
    return round(float(total_maintenance_cost) / expected, 4)


def maintenance_category(ratio: Optional[float]) -> str:
    if ratio is None:
        return "no_data"
    if ratio > 0.30:
        return "high_maintenance"
    if ratio > 0.15:
        return "medium_maintenance"
    return "low_maintenance"


def performance_rating(rate: Optional[float]) -> str:
    if rate is None:
        return "no_data"
    if rate >= 90:
        return "excellent"
    if rate >= 75:
        return "good"
    if rate >= 60:
        return "fair"
    return "poor"


def payment_status(last_payment_date: Optional[date], *, today: date) -> str:
    if last_payment_date is None:
        return "no_payments"
    days = (today - last_payment_date).days
    if days > 45:
        return "overdue"
    if days > 30:
        return "late"
    return "current"


def rent_status(monthly_rent: Optional[float], last_payment_date: Optional[date], *, today: date) -> str:
    """Coarser per-property flag used by the rent status board."""
    if monthly_rent is None:
        return "not_set"
    if last_payment_date is None:
        return "no_payments"
    if (today - last_payment_date).days > 35:
        return "overdue"
    return "current"


def months_back(d: date, n: int) -> date:
    """Same day-of-month n months earlier, clamped to the month's length."""
    y, m = d.year, d.month - n
    while m <= 0:
        m += 12
        y -= 1
    day = d.day
    while True:
        try:
            return date(y, m, day)
        except ValueError:
            day -= 1
