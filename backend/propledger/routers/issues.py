# backend/propledger/routers/issues.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.appliance_status import URGENCY_RANK
from ..models import Appliance, Issue, Property
from ..schemas import IssueCreate, IssueOut, IssueStatus, IssueUpdate
from ..services.appliance_state import delete_issue, report_issue, update_issue
from ..services.ownership import must_get_appliance, must_get_issue, must_get_maintenance_record

log = logging.getLogger("propledger.issues")

router = APIRouter(prefix="/issues", tags=["issues"])


def issue_out(row: Issue) -> IssueOut:
    out = IssueOut.model_validate(row)
    if row.appliance is not None:
        out.appliance_name = row.appliance.name
        out.property_address = row.appliance.property.address if row.appliance.property else None
    return out


@router.post("", response_model=IssueOut, status_code=201)
def create_issue(payload: IssueCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    appliance = must_get_appliance(db, user_id=p.user_id, appliance_id=payload.appliance_id)

    try:
        row = report_issue(
            db,
            appliance=appliance,
            title=payload.title,
            description=payload.description,
            urgency=payload.urgency,
            reported_date=payload.reported_date,
            reported_by=p.user_id,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("issue create failed", extra={"appliance_id": payload.appliance_id})
        raise HTTPException(status_code=500, detail="Failed to create issue")

    db.refresh(row)
    log.info("issue reported", extra={"issue_id": int(row.id), "appliance_id": int(row.appliance_id)})
    return issue_out(row)


@router.get("", response_model=list[IssueOut])
def list_issues(
    appliance_id: Optional[int] = Query(default=None),
    status: Optional[IssueStatus] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = (
        select(Issue)
        .join(Appliance, Appliance.id == Issue.appliance_id)
        .join(Property, Property.id == Appliance.property_id)
        .where(Property.user_id == p.user_id)
    )
    if appliance_id is not None:
        must_get_appliance(db, user_id=p.user_id, appliance_id=appliance_id)
        q = q.where(Issue.appliance_id == appliance_id)
    if status is not None:
        q = q.where(Issue.status == status)

    rank = case(URGENCY_RANK, value=Issue.urgency, else_=0)
    q = q.order_by(desc(rank), desc(Issue.reported_date), desc(Issue.id))
    return [issue_out(r) for r in db.scalars(q).all()]


@router.get("/{issue_id}", response_model=IssueOut)
def get_issue(issue_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return issue_out(must_get_issue(db, user_id=p.user_id, issue_id=issue_id))


@router.put("/{issue_id}", response_model=IssueOut)
def update_issue_route(
    issue_id: int,
    payload: IssueUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    row = must_get_issue(db, user_id=p.user_id, issue_id=issue_id)
    patch = payload.model_dump(exclude_none=True)
    if "maintenance_record_id" in patch:
        must_get_maintenance_record(db, user_id=p.user_id, record_id=patch["maintenance_record_id"])

    try:
        update_issue(db, issue=row, patch=patch)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError:
        db.rollback()
        log.exception("issue update failed", extra={"issue_id": issue_id})
        raise HTTPException(status_code=500, detail="Failed to update issue")

    db.refresh(row)
    return issue_out(row)


@router.delete("/{issue_id}")
def delete_issue_route(issue_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = must_get_issue(db, user_id=p.user_id, issue_id=issue_id)

    try:
        delete_issue(db, issue=row)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("issue delete failed", extra={"issue_id": issue_id})
        raise HTTPException(status_code=500, detail="Failed to delete issue")

    return {"ok": True, "message": "Issue deleted successfully"}
