# backend/propledger/routers/dashboard.py
from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..services.dashboard_rollups import DEFAULT_TIME_RANGE, compute_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=dict[str, Any])
def dashboard(
    time_range: Literal["3months", "6months", "12months"] = Query(default=DEFAULT_TIME_RANGE),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    """
    Landing-page cards for the current user:
      - overview counts and costs
      - recent maintenance, most expensive appliances
      - properties needing attention
      - monthly spending (oldest first)
    """
    return compute_dashboard(db, user_id=p.user_id, time_range=time_range)
