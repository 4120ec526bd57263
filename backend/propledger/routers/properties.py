# backend/propledger/routers/properties.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..models import Appliance, Property
from ..schemas import PropertyCreate, PropertyOut
from ..services.ownership import must_get_property

log = logging.getLogger("propledger.properties")

router = APIRouter(prefix="/properties", tags=["properties"])


def _appliance_count(db: Session, property_id: int) -> int:
    return int(db.scalar(select(func.count(Appliance.id)).where(Appliance.property_id == property_id)) or 0)


def _out(row: Property, appliance_count: int) -> PropertyOut:
    out = PropertyOut.model_validate(row)
    out.appliance_count = appliance_count
    return out


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(payload: PropertyCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = Property(user_id=p.user_id, **payload.model_dump())
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("property create failed", extra={"user_id": p.user_id})
        raise HTTPException(status_code=500, detail="Failed to create property")
    db.refresh(row)
    return _out(row, 0)


@router.get("", response_model=list[PropertyOut])
def list_properties(db: Session = Depends(get_db), p=Depends(get_principal)):
    n = func.count(Appliance.id)
    rows = db.execute(
        select(Property, n)
        .outerjoin(Appliance, Appliance.property_id == Property.id)
        .where(Property.user_id == p.user_id)
        .group_by(Property.id)
        .order_by(desc(Property.created_at), desc(Property.id))
    ).all()
    return [_out(row, int(count or 0)) for row, count in rows]


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_property(db, user_id=p.user_id, property_id=property_id)
    return _out(row, _appliance_count(db, row.id))


@router.put("/{property_id}", response_model=PropertyOut)
def update_property(
    property_id: int,
    payload: PropertyCreate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = must_get_property(db, user_id=p.user_id, property_id=property_id)
    for k, v in payload.model_dump().items():
        setattr(row, k, v)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("property update failed", extra={"property_id": property_id})
        raise HTTPException(status_code=500, detail="Failed to update property")
    db.refresh(row)
    return _out(row, _appliance_count(db, row.id))


@router.delete("/{property_id}")
def delete_property(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_property(db, user_id=p.user_id, property_id=property_id)
    db.delete(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("property delete failed", extra={"property_id": property_id})
        raise HTTPException(status_code=500, detail="Failed to delete property")
    return {"ok": True, "message": "Property deleted successfully"}
