# backend/tests/test_appliance_state_engine.py
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select

from propledger.models import Appliance, Issue, MaintenanceRecord, Property, User
from propledger.services.appliance_state import (
    delete_issue,
    log_maintenance,
    reconcile_appliance_rollups,
    record_maintenance_updated,
    remove_maintenance,
    report_issue,
    update_issue,
)


def _mk_appliance(db, email: str = "engine@demo.local") -> Appliance:
    u = User(email=email, name="engine")
    db.add(u)
    db.flush()
    p = Property(user_id=u.id, address="1 Elm St", monthly_rent=1000.0)
    db.add(p)
    db.flush()
    a = Appliance(property_id=p.id, name="Fridge", type="refrigerator")
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


def _issue(db, a: Appliance, urgency: str, title: str = "Problem") -> Issue:
    return report_issue(db, appliance=a, title=title, description=f"{urgency} problem", urgency=urgency)


def _log(db, a: Appliance, **kw) -> MaintenanceRecord:
    data = {
        "maintenance_type": "routine",
        "description": "Serviced",
        "maintenance_date": date(2026, 3, 1),
    }
    data.update(kw)
    record, _ = log_maintenance(db, appliance=a, data=data)
    return record


def test_status_steps_down_as_issues_close(db_session):
    db = db_session
    a = _mk_appliance(db)

    crit = _issue(db, a, "critical")
    high = _issue(db, a, "high")
    low = _issue(db, a, "low")
    db.commit()
    db.refresh(a)
    assert a.status == "out_of_service"
    assert a.has_open_issues is True
    assert a.urgency_level == "critical"

    update_issue(db, issue=crit, patch={"status": "resolved"})
    db.commit()
    db.refresh(a)
    db.refresh(crit)
    assert a.status == "needs_repair"
    assert a.urgency_level == "high"
    assert crit.resolved_date == date.today()

    update_issue(db, issue=high, patch={"status": "cancelled"})
    db.commit()
    db.refresh(a)
    assert a.status == "needs_repair"
    assert a.urgency_level == "low"

    delete_issue(db, issue=low)
    db.commit()
    db.refresh(a)
    assert a.status == "working"
    assert a.has_open_issues is False
    assert a.urgency_level is None


def test_scheduled_and_in_progress_issues_count_as_open(db_session):
    db = db_session
    a = _mk_appliance(db)

    i = _issue(db, a, "medium")
    update_issue(db, issue=i, patch={"status": "scheduled", "scheduled_date": date(2026, 4, 2)})
    db.commit()
    db.refresh(a)
    assert a.has_open_issues is True
    assert a.status == "needs_repair"

    update_issue(db, issue=i, patch={"status": "in_progress"})
    db.commit()
    db.refresh(a)
    assert a.has_open_issues is True


def test_issue_patch_without_known_fields_is_rejected(db_session):
    db = db_session
    a = _mk_appliance(db)
    i = _issue(db, a, "low")
    db.commit()

    with pytest.raises(ValueError):
        update_issue(db, issue=i, patch={"color": "blue", "title": None})


def test_completed_repair_resolves_every_open_issue(db_session):
    db = db_session
    a = _mk_appliance(db)

    i1 = _issue(db, a, "medium", title="Noisy")
    i2 = _issue(db, a, "critical", title="Not cooling")
    update_issue(db, issue=i1, patch={"resolution_notes": "Tenant called twice"})
    db.commit()

    record, effect = log_maintenance(
        db,
        appliance=a,
        data={
            "maintenance_type": "repair",
            "description": "Replaced compressor",
            "cost": 150.0,
            "maintenance_date": date(2026, 3, 10),
        },
    )
    db.commit()

    assert effect.resolved_issue_count == 2
    assert effect.status_reset is True

    note = "Auto-resolved: repair maintenance completed - Replaced compressor"
    for i in (i1, i2):
        db.refresh(i)
        assert i.status == "resolved"
        assert i.resolved_date == date(2026, 3, 10)
        assert i.maintenance_record_id == record.id
    assert i1.resolution_notes == "Tenant called twice\n\n" + note
    assert i2.resolution_notes == note

    db.refresh(a)
    assert a.status == "working"
    assert a.has_open_issues is False
    assert a.urgency_level is None
    assert a.maintenance_count == 1
    assert a.total_maintenance_cost == pytest.approx(150.0)
    assert a.last_maintenance == date(2026, 3, 10)
    assert a.last_maintenance_cost == pytest.approx(150.0)


def test_routine_or_unfinished_work_leaves_issues_open(db_session):
    db = db_session
    a = _mk_appliance(db)
    i1 = _issue(db, a, "medium")
    i2 = _issue(db, a, "high")
    db.commit()

    _log(db, a, maintenance_type="routine", status="completed", cost=80.0)
    _log(db, a, maintenance_type="repair", status="scheduled")
    db.commit()

    for i in (i1, i2):
        db.refresh(i)
        assert i.status == "open"
        assert i.maintenance_record_id is None

    db.refresh(a)
    assert a.status == "needs_repair"
    assert a.has_open_issues is True
    assert a.maintenance_count == 2
    assert a.total_maintenance_cost == pytest.approx(80.0)


def test_rollups_match_records_after_creates_and_deletes(db_session):
    db = db_session
    a = _mk_appliance(db)

    r1 = _log(db, a, cost=100.0, maintenance_date=date(2026, 1, 5))
    r2 = _log(db, a, cost=None, maintenance_date=date(2026, 2, 5))
    _log(db, a, cost=50.5, maintenance_date=date(2026, 3, 5))
    r4 = _log(db, a, cost=0.0, maintenance_date=date(2026, 4, 5))
    db.commit()

    remove_maintenance(db, record=r1)
    remove_maintenance(db, record=r2)
    db.commit()

    count, total = db.execute(
        select(func.count(MaintenanceRecord.id), func.coalesce(func.sum(func.coalesce(MaintenanceRecord.cost, 0)), 0))
        .where(MaintenanceRecord.appliance_id == a.id)
    ).one()

    db.refresh(a)
    assert a.maintenance_count == count == 2
    assert a.total_maintenance_cost == pytest.approx(float(total)) == pytest.approx(50.5)
    assert a.last_maintenance == date(2026, 4, 5)

    # dropping the newest record falls back to the one before it
    remove_maintenance(db, record=r4)
    db.commit()
    db.refresh(a)
    assert a.maintenance_count == 1
    assert a.last_maintenance == date(2026, 3, 5)
    assert a.last_maintenance_cost == pytest.approx(50.5)


def test_backdated_record_keeps_newest_last_maintenance(db_session):
    db = db_session
    a = _mk_appliance(db)
    _log(db, a, cost=10.0, maintenance_date=date(2026, 5, 1))
    _log(db, a, cost=20.0, maintenance_date=date(2026, 1, 1))
    db.commit()

    db.refresh(a)
    assert a.last_maintenance == date(2026, 5, 1)
    assert a.last_maintenance_cost == pytest.approx(10.0)
    assert a.maintenance_count == 2
    assert a.total_maintenance_cost == pytest.approx(30.0)

    # nothing for reconcile to repair
    assert reconcile_appliance_rollups(db, appliance_id=a.id) is False


def test_deleting_last_record_clears_last_maintenance(db_session):
    db = db_session
    a = _mk_appliance(db)
    r = _log(db, a, cost=25.0)
    db.commit()

    remove_maintenance(db, record=r)
    db.commit()
    db.refresh(a)
    assert a.maintenance_count == 0
    assert a.total_maintenance_cost == pytest.approx(0.0)
    assert a.last_maintenance is None
    assert a.last_maintenance_cost is None


def test_deleting_a_resolving_record_unlinks_its_issues(db_session):
    db = db_session
    a = _mk_appliance(db)
    i = _issue(db, a, "high")
    r = _log(db, a, maintenance_type="replacement", cost=900.0)
    db.commit()

    remove_maintenance(db, record=r)
    db.commit()
    db.refresh(i)
    assert i.maintenance_record_id is None
    assert i.status == "resolved"


def test_cost_edit_moves_total_by_the_difference(db_session):
    db = db_session
    a = _mk_appliance(db)
    _log(db, a, cost=30.0, maintenance_date=date(2026, 1, 1))
    r = _log(db, a, cost=100.0, maintenance_date=date(2026, 2, 1))
    db.commit()

    record_maintenance_updated(db, record=r, patch={"cost": 40.0, "notes": "discount applied"})
    db.commit()
    db.refresh(a)
    assert a.total_maintenance_cost == pytest.approx(70.0)
    assert a.maintenance_count == 2
    assert a.last_maintenance_cost == pytest.approx(40.0)

    # moving the newest record into the past re-points last_maintenance
    record_maintenance_updated(db, record=r, patch={"maintenance_date": date(2025, 12, 1)})
    db.commit()
    db.refresh(a)
    assert a.last_maintenance == date(2026, 1, 1)
    assert a.last_maintenance_cost == pytest.approx(30.0)


def test_record_patch_validation(db_session):
    db = db_session
    a = _mk_appliance(db)
    r = _log(db, a, maintenance_date=date(2026, 3, 1))
    db.commit()

    with pytest.raises(ValueError):
        record_maintenance_updated(db, record=r, patch={"unknown": 1, "cost": None})

    with pytest.raises(ValueError):
        record_maintenance_updated(db, record=r, patch={"next_due_date": date(2026, 3, 1)})

    with pytest.raises(ValueError):
        record_maintenance_updated(db, record=r, patch={"warranty_until": date(2026, 2, 1)})


def test_reconcile_repairs_drifted_rollups(db_session):
    db = db_session
    a = _mk_appliance(db)
    _log(db, a, cost=10.0, maintenance_date=date(2026, 1, 1))
    _log(db, a, cost=20.0, maintenance_date=date(2026, 5, 1))
    db.commit()

    assert reconcile_appliance_rollups(db, appliance_id=a.id) is False

    a.maintenance_count = 9
    a.total_maintenance_cost = 999.0
    a.last_maintenance = None
    db.commit()

    assert reconcile_appliance_rollups(db, appliance_id=a.id) is True
    db.commit()
    db.refresh(a)
    assert a.maintenance_count == 2
    assert a.total_maintenance_cost == pytest.approx(30.0)
    assert a.last_maintenance == date(2026, 5, 1)
    assert a.last_maintenance_cost == pytest.approx(20.0)

    assert reconcile_appliance_rollups(db, appliance_id=a.id) is False
