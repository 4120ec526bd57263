# backend/propledger/routers/appliances.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..models import Appliance, Property
from ..schemas import ApplianceCreate, ApplianceOut, ApplianceUpdate
from ..services.ownership import must_get_appliance, must_get_property

log = logging.getLogger("propledger.appliances")

router = APIRouter(prefix="/appliances", tags=["appliances"])


def _commit(db: Session, *, what: str, **extra) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("appliance %s failed", what, extra=extra)
        raise HTTPException(status_code=500, detail=f"Failed to {what} appliance")


@router.post("", response_model=ApplianceOut, status_code=201)
def create_appliance(payload: ApplianceCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    must_get_property(db, user_id=p.user_id, property_id=payload.property_id)

    row = Appliance(**payload.model_dump())
    db.add(row)
    _commit(db, what="create", property_id=payload.property_id)
    db.refresh(row)
    return row


@router.get("", response_model=list[ApplianceOut])
def list_appliances(
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = (
        select(Appliance)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == p.user_id)
    )
    if property_id is not None:
        must_get_property(db, user_id=p.user_id, property_id=property_id)
        q = q.where(Appliance.property_id == property_id)

    return list(db.scalars(q.order_by(desc(Appliance.created_at), desc(Appliance.id))).all())


@router.get("/{appliance_id}", response_model=ApplianceOut)
def get_appliance(appliance_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return must_get_appliance(db, user_id=p.user_id, appliance_id=appliance_id)


@router.put("/{appliance_id}", response_model=ApplianceOut)
def update_appliance(
    appliance_id: int,
    payload: ApplianceUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    """
    Descriptive fields and a manual status override. has_open_issues,
    urgency_level and the maintenance rollups are not writable here.
    """
    row = must_get_appliance(db, user_id=p.user_id, appliance_id=appliance_id)

    changes = payload.model_dump(exclude_unset=True)
    # name and status are NOT NULL; an explicit null means "leave as is"
    for k in ("name", "status"):
        if changes.get(k) is None:
            changes.pop(k, None)
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    for k, v in changes.items():
        setattr(row, k, v)
    row.updated_at = datetime.utcnow()

    _commit(db, what="update", appliance_id=appliance_id)
    db.refresh(row)
    return row


@router.delete("/{appliance_id}")
def delete_appliance(appliance_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_appliance(db, user_id=p.user_id, appliance_id=appliance_id)
    db.delete(row)
    _commit(db, what="delete", appliance_id=appliance_id)
    return {"ok": True, "message": "Appliance deleted successfully"}
