# backend/propledger/services/ownership.py
from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Appliance, Issue, MaintenanceRecord, Property

# 404 rather than 403 so callers cannot probe for other users' ids


def must_get_property(db: Session, *, user_id: int, property_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.id == property_id, Property.user_id == user_id))
    if not row:
        raise HTTPException(status_code=404, detail="property not found or access denied")
    return row


def must_get_appliance(db: Session, *, user_id: int, appliance_id: int) -> Appliance:
    row = db.scalar(
        select(Appliance)
        .join(Property, Property.id == Appliance.property_id)
        .where(Appliance.id == appliance_id, Property.user_id == user_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail="appliance not found or access denied")
    return row


def must_get_maintenance_record(db: Session, *, user_id: int, record_id: int) -> MaintenanceRecord:
    row = db.scalar(
        select(MaintenanceRecord)
        .join(Appliance, Appliance.id == MaintenanceRecord.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(MaintenanceRecord.id == record_id, Property.user_id == user_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail="maintenance record not found or access denied")
    return row


def must_get_issue(db: Session, *, user_id: int, issue_id: int) -> Issue:
    row = db.scalar(
        select(Issue)
        .join(Appliance, Appliance.id == Issue.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Issue.id == issue_id, Property.user_id == user_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail="issue not found or access denied")
    return row
