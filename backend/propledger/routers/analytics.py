# backend/propledger/routers/analytics.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import MonthlyAnalyticsOut, PropertyAnalyticsOut
from ..services.analytics import compute_monthly_analytics, compute_property_analytics, validate_property_id
from ..services.ownership import must_get_property

router = APIRouter(tags=["analytics"])


def _year_or_current(year: Optional[int]) -> int:
    return int(year) if year is not None else datetime.utcnow().year


@router.get("/property-analytics", response_model=list[PropertyAnalyticsOut])
def property_analytics(
    year: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    try:
        return compute_property_analytics(db, user_id=p.user_id, year=_year_or_current(year))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/monthly-analytics", response_model=list[MonthlyAnalyticsOut])
def monthly_analytics(
    year: Optional[int] = Query(default=None),
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    """Dense 12-month series per property; read-only."""
    try:
        pid = validate_property_id(property_id)
        if pid is not None:
            must_get_property(db, user_id=p.user_id, property_id=pid)
        return compute_monthly_analytics(db, user_id=p.user_id, year=_year_or_current(year), property_id=pid)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
