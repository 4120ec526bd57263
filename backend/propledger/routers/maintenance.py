# backend/propledger/routers/maintenance.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..models import Appliance, MaintenanceRecord, Property
from ..schemas import MaintenanceRecordCreate, MaintenanceRecordOut, MaintenanceRecordUpdate
from ..services.appliance_state import log_maintenance, record_maintenance_updated, remove_maintenance
from ..services.ownership import must_get_appliance, must_get_maintenance_record

log = logging.getLogger("propledger.maintenance")

router = APIRouter(prefix="/maintenance-records", tags=["maintenance"])


def record_out(row: MaintenanceRecord, *, appliance_name: Optional[str] = None, property_address: Optional[str] = None):
    out = MaintenanceRecordOut.model_validate(row)
    if appliance_name is None and row.appliance is not None:
        appliance_name = row.appliance.name
        property_address = row.appliance.property.address if row.appliance.property else None
    out.appliance_name = appliance_name
    out.property_address = property_address
    return out


@router.post("", response_model=MaintenanceRecordOut, status_code=201)
def create_maintenance_record(
    payload: MaintenanceRecordCreate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    appliance = must_get_appliance(db, user_id=p.user_id, appliance_id=payload.appliance_id)

    try:
        record, effect = log_maintenance(db, appliance=appliance, data=payload.model_dump())
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError:
        db.rollback()
        log.exception("maintenance create failed", extra={"appliance_id": payload.appliance_id})
        raise HTTPException(status_code=500, detail="Failed to create maintenance record")

    db.refresh(record)
    out = record_out(record)
    out.resolved_issue_count = effect.resolved_issue_count
    return out


@router.get("", response_model=list[MaintenanceRecordOut])
def list_maintenance_records(
    appliance_id: Optional[int] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = (
        select(MaintenanceRecord, Appliance.name, Property.address)
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == p.user_id)
    )
    if appliance_id is not None:
        must_get_appliance(db, user_id=p.user_id, appliance_id=appliance_id)
        q = q.where(MaintenanceRecord.appliance_id == appliance_id)

    q = q.order_by(desc(MaintenanceRecord.maintenance_date), desc(MaintenanceRecord.created_at)).limit(limit)
    return [record_out(r, appliance_name=name, property_address=address) for r, name, address in db.execute(q).all()]


@router.get("/{record_id}", response_model=MaintenanceRecordOut)
def get_maintenance_record(record_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_maintenance_record(db, user_id=p.user_id, record_id=record_id)
    return record_out(row)


@router.put("/{record_id}", response_model=MaintenanceRecordOut)
def update_maintenance_record(
    record_id: int,
    payload: MaintenanceRecordUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = must_get_maintenance_record(db, user_id=p.user_id, record_id=record_id)

    try:
        record_maintenance_updated(db, record=row, patch=payload.model_dump(exclude_none=True))
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError:
        db.rollback()
        log.exception("maintenance update failed", extra={"record_id": record_id})
        raise HTTPException(status_code=500, detail="Failed to update maintenance record")

    db.refresh(row)
    return record_out(row)


@router.delete("/{record_id}")
def delete_maintenance_record(record_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_maintenance_record(db, user_id=p.user_id, record_id=record_id)

    try:
        remove_maintenance(db, record=row)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("maintenance delete failed", extra={"record_id": record_id})
        raise HTTPException(status_code=500, detail="Failed to delete maintenance record")

    return {"ok": True, "message": "Maintenance record deleted successfully"}
