# backend/propledger/services/appliance_state.py
"""
Derived appliance state.

An appliance row carries two caches that must track its children:

  issues              -> has_open_issues, urgency_level, status
  maintenance_records -> maintenance_count, total_maintenance_cost,
                         last_maintenance, last_maintenance_cost

Every function here runs inside the caller's transaction and never commits.
Counters are moved with SQL-side UPDATE expressions (never read into Python
and written back) so two requests touching the same appliance serialize in
the database instead of losing an update.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import and_, case, desc, func, select, update
from sqlalchemy.orm import Session

from ..domain.appliance_status import (
    ACTIVE_ISSUE_STATUSES,
    URGENCY_RANK,
    DerivedApplianceState,
    auto_resolution_note,
    derive_state,
    resolves_issues,
    urgency_from_rank,
)
from ..models import Appliance, Issue, MaintenanceRecord

log = logging.getLogger("propledger.appliance_state")

MAINTENANCE_PATCH_FIELDS = (
    "maintenance_type",
    "description",
    "cost",
    "technician_name",
    "technician_company",
    "maintenance_date",
    "next_due_date",
    "notes",
    "parts_replaced",
    "warranty_until",
    "status",
)

ISSUE_PATCH_FIELDS = (
    "title",
    "description",
    "urgency",
    "status",
    "scheduled_date",
    "resolved_date",
    "resolution_notes",
    "maintenance_record_id",
)

_SYNC = {"synchronize_session": "fetch"}


def _now() -> datetime:
    return datetime.utcnow()


def _cost(v: Any) -> float:
    """Contribution of one record to the cost rollup: null and negatives count as 0."""
    if v is None:
        return 0.0
    return max(float(v), 0.0)


def _floor_zero(expr):
    return case((expr < 0, 0), else_=expr)


def _is_active():
    return Issue.status.in_(ACTIVE_ISSUE_STATUSES)


@dataclass(frozen=True)
class MaintenanceEffect:
    record_id: int
    appliance_id: int
    resolved_issue_count: int
    status_reset: bool


# -----------------------------
# Issues -> appliance status
# -----------------------------
def record_issue_change(db: Session, *, appliance_id: int) -> DerivedApplianceState:
    """
    Re-derive has_open_issues / urgency_level / status from the appliance's
    active issues. Always computed from scratch, so deleting or resolving the
    last active issue lands on "working" without any decrement bookkeeping.
    """
    db.flush()

    rank = case(URGENCY_RANK, value=Issue.urgency, else_=0)
    active_count, top_rank = db.execute(
        select(func.count(Issue.id), func.max(rank)).where(Issue.appliance_id == appliance_id, _is_active())
    ).one()

    state = derive_state(int(active_count or 0), urgency_from_rank(top_rank))

    db.execute(
        update(Appliance)
        .where(Appliance.id == appliance_id)
        .values(
            has_open_issues=state.has_open_issues,
            urgency_level=state.urgency_level,
            status=state.status,
            updated_at=_now(),
        )
        .execution_options(**_SYNC)
    )
    return state


def report_issue(
    db: Session,
    *,
    appliance: Appliance,
    title: str,
    description: str,
    urgency: Optional[str] = None,
    reported_date: Optional[date] = None,
    reported_by: Optional[int] = None,
) -> Issue:
    row = Issue(
        appliance_id=appliance.id,
        title=title.strip(),
        description=description.strip(),
        urgency=urgency or "medium",
        status="open",
        reported_date=reported_date or date.today(),
        reported_by=reported_by,
    )
    db.add(row)
    db.flush()

    record_issue_change(db, appliance_id=appliance.id)
    return row


def update_issue(db: Session, *, issue: Issue, patch: dict[str, Any]) -> Issue:
    changes = {k: v for k, v in patch.items() if k in ISSUE_PATCH_FIELDS and v is not None}
    if not changes:
        raise ValueError("No valid fields to update")

    for k, v in changes.items():
        setattr(issue, k, v)

    if changes.get("status") == "resolved" and issue.resolved_date is None:
        issue.resolved_date = date.today()

    issue.updated_at = _now()
    db.flush()

    record_issue_change(db, appliance_id=issue.appliance_id)
    return issue


def delete_issue(db: Session, *, issue: Issue) -> None:
    appliance_id = issue.appliance_id
    db.delete(issue)
    db.flush()
    record_issue_change(db, appliance_id=appliance_id)


# -----------------------------
# Maintenance -> rollups
# -----------------------------
def _refresh_last_maintenance(db: Session, *, appliance_id: int) -> None:
    latest = db.scalar(
        select(MaintenanceRecord)
        .where(MaintenanceRecord.appliance_id == appliance_id)
        .order_by(desc(MaintenanceRecord.maintenance_date), desc(MaintenanceRecord.id))
        .limit(1)
    )
    db.execute(
        update(Appliance)
        .where(Appliance.id == appliance_id)
        .values(
            last_maintenance=latest.maintenance_date if latest else None,
            last_maintenance_cost=float(latest.cost or 0.0) if latest else None,
            updated_at=_now(),
        )
        .execution_options(**_SYNC)
    )


def _auto_resolve_issues(db: Session, *, record: MaintenanceRecord) -> int:
    note = auto_resolution_note(record.maintenance_type, record.description)
    has_notes = and_(Issue.resolution_notes.is_not(None), Issue.resolution_notes != "")

    n = int(db.scalar(select(func.count(Issue.id)).where(Issue.appliance_id == record.appliance_id, _is_active())) or 0)
    if not n:
        return 0

    db.execute(
        update(Issue)
        .where(Issue.appliance_id == record.appliance_id, _is_active())
        .values(
            status="resolved",
            resolved_date=record.maintenance_date,
            resolution_notes=case((has_notes, Issue.resolution_notes + "\n\n" + note), else_=note),
            maintenance_record_id=record.id,
            updated_at=_now(),
        )
        .execution_options(**_SYNC)
    )
    return n


def record_maintenance_created(db: Session, *, record: MaintenanceRecord) -> MaintenanceEffect:
    """
    Fold a freshly inserted record into its appliance.

    A completed repair/replacement also puts the appliance back to "working"
    and resolves every active issue on it, linking them to this record.
    last_maintenance always points at the newest record by date, so a
    backdated entry does not move it.
    """
    db.flush()

    resolving = resolves_issues(record.maintenance_type, record.status)

    values: dict[str, Any] = {
        "maintenance_count": Appliance.maintenance_count + 1,
        "total_maintenance_cost": func.coalesce(Appliance.total_maintenance_cost, 0) + _cost(record.cost),
        "updated_at": _now(),
    }
    if resolving:
        values["status"] = "working"

    db.execute(update(Appliance).where(Appliance.id == record.appliance_id).values(**values).execution_options(**_SYNC))
    _refresh_last_maintenance(db, appliance_id=record.appliance_id)

    resolved = 0
    if resolving:
        resolved = _auto_resolve_issues(db, record=record)
        record_issue_change(db, appliance_id=record.appliance_id)

    return MaintenanceEffect(
        record_id=int(record.id),
        appliance_id=int(record.appliance_id),
        resolved_issue_count=resolved,
        status_reset=resolving,
    )


def record_maintenance_deleted(db: Session, *, appliance_id: int, cost: Optional[float]) -> None:
    """
    Back a deleted record out of the rollups, flooring both counters at 0.
    last_maintenance falls back to the newest remaining record (or None).
    """
    db.execute(
        update(Appliance)
        .where(Appliance.id == appliance_id)
        .values(
            maintenance_count=_floor_zero(Appliance.maintenance_count - 1),
            total_maintenance_cost=_floor_zero(func.coalesce(Appliance.total_maintenance_cost, 0) - _cost(cost)),
            updated_at=_now(),
        )
        .execution_options(**_SYNC)
    )
    _refresh_last_maintenance(db, appliance_id=appliance_id)


def _validate_record_dates(
    maintenance_date: Optional[date], next_due_date: Optional[date], warranty_until: Optional[date]
) -> None:
    if maintenance_date is None:
        return
    if next_due_date is not None and next_due_date <= maintenance_date:
        raise ValueError("next_due_date must be after maintenance_date")
    if warranty_until is not None and warranty_until < maintenance_date:
        raise ValueError("warranty_until cannot be before maintenance_date")


def record_maintenance_updated(db: Session, *, record: MaintenanceRecord, patch: dict[str, Any]) -> MaintenanceRecord:
    """
    Apply a field-level patch (unknown and null fields are ignored).

    A cost change moves total_maintenance_cost by the difference, and a
    cost/date change re-points last_maintenance at the newest record, so the
    rollups keep matching the records after an edit.
    """
    changes = {k: v for k, v in patch.items() if k in MAINTENANCE_PATCH_FIELDS and v is not None}
    if not changes:
        raise ValueError("No valid fields to update")

    _validate_record_dates(
        changes.get("maintenance_date", record.maintenance_date),
        changes.get("next_due_date", record.next_due_date),
        changes.get("warranty_until", record.warranty_until),
    )

    old_cost = _cost(record.cost)
    for k, v in changes.items():
        setattr(record, k, v)
    record.updated_at = _now()
    db.flush()

    delta = _cost(record.cost) - old_cost
    if delta:
        db.execute(
            update(Appliance)
            .where(Appliance.id == record.appliance_id)
            .values(
                total_maintenance_cost=_floor_zero(func.coalesce(Appliance.total_maintenance_cost, 0) + delta),
                updated_at=_now(),
            )
            .execution_options(**_SYNC)
        )

    if "cost" in changes or "maintenance_date" in changes:
        _refresh_last_maintenance(db, appliance_id=record.appliance_id)

    return record


def log_maintenance(db: Session, *, appliance: Appliance, data: dict[str, Any]) -> tuple[MaintenanceRecord, MaintenanceEffect]:
    _validate_record_dates(data.get("maintenance_date"), data.get("next_due_date"), data.get("warranty_until"))

    record = MaintenanceRecord(
        appliance_id=appliance.id,
        maintenance_type=data["maintenance_type"],
        description=data["description"],
        cost=data.get("cost"),
        technician_name=data.get("technician_name"),
        technician_company=data.get("technician_company"),
        maintenance_date=data["maintenance_date"],
        next_due_date=data.get("next_due_date"),
        notes=data.get("notes"),
        warranty_until=data.get("warranty_until"),
        status=data.get("status") or "completed",
    )
    record.parts_replaced = data.get("parts_replaced")
    db.add(record)
    db.flush()

    effect = record_maintenance_created(db, record=record)
    log.info(
        "maintenance logged",
        extra={
            "appliance_id": effect.appliance_id,
            "record_id": effect.record_id,
        },
    )
    if effect.resolved_issue_count:
        log.info(
            "auto-resolved %d issue(s)",
            effect.resolved_issue_count,
            extra={"appliance_id": effect.appliance_id, "record_id": effect.record_id},
        )
    return record, effect


def remove_maintenance(db: Session, *, record: MaintenanceRecord) -> None:
    appliance_id = int(record.appliance_id)
    cost = record.cost

    db.execute(
        update(Issue)
        .where(Issue.maintenance_record_id == record.id)
        .values(maintenance_record_id=None)
        .execution_options(**_SYNC)
    )
    db.delete(record)
    db.flush()

    record_maintenance_deleted(db, appliance_id=appliance_id, cost=cost)


# -----------------------------
# Full reconciliation
# -----------------------------
def reconcile_appliance_rollups(db: Session, *, appliance_id: int) -> bool:
    """
    Recompute all four maintenance rollups from the records themselves.
    Returns True when the stored values had drifted.
    """
    db.flush()

    count, total = db.execute(
        select(
            func.count(MaintenanceRecord.id),
            func.coalesce(
                func.sum(case((MaintenanceRecord.cost > 0, MaintenanceRecord.cost), else_=0)),
                0,
            ),
        ).where(MaintenanceRecord.appliance_id == appliance_id)
    ).one()

    latest = db.scalar(
        select(MaintenanceRecord)
        .where(MaintenanceRecord.appliance_id == appliance_id)
        .order_by(desc(MaintenanceRecord.maintenance_date), desc(MaintenanceRecord.id))
        .limit(1)
    )

    appliance = db.get(Appliance, appliance_id)
    if appliance is None:
        return False

    want = {
        "maintenance_count": int(count or 0),
        "total_maintenance_cost": round(float(total or 0.0), 2),
        "last_maintenance": latest.maintenance_date if latest else None,
        "last_maintenance_cost": float(latest.cost or 0.0) if latest else None,
    }
    have = {
        "maintenance_count": int(appliance.maintenance_count or 0),
        "total_maintenance_cost": round(float(appliance.total_maintenance_cost or 0.0), 2),
        "last_maintenance": appliance.last_maintenance,
        "last_maintenance_cost": appliance.last_maintenance_cost,
    }
    if want == have:
        return False

    for k, v in want.items():
        setattr(appliance, k, v)
    appliance.updated_at = _now()
    db.flush()

    log.info("rollups reconciled", extra={"appliance_id": appliance_id})
    return True
