# backend/propledger/routers/rent.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..models import Property, RentPayment
from ..schemas import RentPaymentCreate, RentPaymentOut, RentStatusOut
from ..services.ownership import must_get_property
from ..services.rent_status import compute_rent_status

log = logging.getLogger("propledger.rent")

router = APIRouter(tags=["rent"])


@router.post("/rent-payments", response_model=RentPaymentOut, status_code=201)
def create_rent_payment(payload: RentPaymentCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    prop = must_get_property(db, user_id=p.user_id, property_id=payload.property_id)

    data = payload.model_dump()
    data["status"] = data.get("status") or "paid"
    data["late_fee_amount"] = data.get("late_fee_amount") or 0.0

    row = RentPayment(**data)
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("rent payment create failed", extra={"property_id": payload.property_id})
        raise HTTPException(status_code=500, detail="Failed to create rent payment")
    db.refresh(row)

    out = RentPaymentOut.model_validate(row)
    out.property_address = prop.address
    return out


@router.get("/rent-payments", response_model=list[RentPaymentOut])
def list_rent_payments(
    property_id: Optional[int] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=2000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = (
        select(RentPayment, Property.address)
        .join(Property, Property.id == RentPayment.property_id)
        .where(Property.user_id == p.user_id)
    )
    if property_id is not None:
        must_get_property(db, user_id=p.user_id, property_id=property_id)
        q = q.where(RentPayment.property_id == property_id)

    q = q.order_by(desc(RentPayment.due_date), desc(RentPayment.payment_date)).limit(limit)

    out = []
    for row, address in db.execute(q).all():
        r = RentPaymentOut.model_validate(row)
        r.property_address = address
        out.append(r)
    return out


@router.get("/rent-status", response_model=list[RentStatusOut])
def rent_status_board(db: Session = Depends(get_db), p=Depends(get_principal)):
    return compute_rent_status(db, user_id=p.user_id)
