# backend/tests/test_api_maintenance_and_issues.py
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from propledger.services import appliance_state


def _mk_property(client, headers, address: str = "10 Main St", monthly_rent: float = 1500.0) -> int:
    r = client.post("/api/properties", json={"address": address, "monthly_rent": monthly_rent}, headers=headers)
    assert r.status_code == 201, r.text
    return int(r.json()["id"])


def _mk_appliance(client, headers, property_id: int, **kw) -> int:
    body = {"property_id": property_id, "name": "Dishwasher", "type": "dishwasher"}
    body.update(kw)
    r = client.post("/api/appliances", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return int(r.json()["id"])


def _appliance(client, headers, appliance_id: int) -> dict:
    r = client.get(f"/api/appliances/{appliance_id}", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_issue_report_and_repair_cycle(client, owner_headers):
    pid = _mk_property(client, owner_headers)
    aid = _mk_appliance(client, owner_headers, pid)

    r = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "  Leaking ", "description": "Water on floor", "urgency": "critical"},
        headers=owner_headers,
    )
    assert r.status_code == 201, r.text
    issue = r.json()
    assert issue["status"] == "open"
    assert issue["title"] == "Leaking"
    assert issue["appliance_name"] == "Dishwasher"
    assert issue["reported_by"] is not None

    r = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "Noisy", "description": "Rattles"},
        headers=owner_headers,
    )
    assert r.json()["urgency"] == "medium"

    a = _appliance(client, owner_headers, aid)
    assert a["status"] == "out_of_service"
    assert a["has_open_issues"] is True
    assert a["urgency_level"] == "critical"

    listed = client.get("/api/issues", params={"appliance_id": aid}, headers=owner_headers).json()
    assert [i["urgency"] for i in listed] == ["critical", "medium"]

    r = client.post(
        "/api/maintenance-records",
        json={
            "appliance_id": aid,
            "maintenance_type": "repair",
            "description": "Replaced pump",
            "cost": 220,
            "maintenance_date": "2026-05-02",
            "parts_replaced": ["pump", "gasket"],
        },
        headers=owner_headers,
    )
    assert r.status_code == 201, r.text
    rec = r.json()
    assert rec["status"] == "completed"
    assert rec["resolved_issue_count"] == 2
    assert rec["parts_replaced"] == ["pump", "gasket"]
    assert rec["property_address"] == "10 Main St"

    a = _appliance(client, owner_headers, aid)
    assert a["status"] == "working"
    assert a["has_open_issues"] is False
    assert a["maintenance_count"] == 1
    assert a["total_maintenance_cost"] == 220.0
    assert a["last_maintenance"] == "2026-05-02"

    resolved = client.get("/api/issues", params={"status": "resolved"}, headers=owner_headers).json()
    assert len(resolved) == 2
    assert all(i["resolved_date"] == "2026-05-02" for i in resolved)
    assert all(i["maintenance_record_id"] == rec["id"] for i in resolved)


def test_deleting_the_only_issue_restores_working(client, owner_headers):
    aid = _mk_appliance(client, owner_headers, _mk_property(client, owner_headers))
    iid = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "Door", "description": "Won't latch", "urgency": "high"},
        headers=owner_headers,
    ).json()["id"]
    assert _appliance(client, owner_headers, aid)["status"] == "needs_repair"

    r = client.delete(f"/api/issues/{iid}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["ok"] is True

    a = _appliance(client, owner_headers, aid)
    assert a["status"] == "working"
    assert a["has_open_issues"] is False

    assert client.delete(f"/api/issues/{iid}", headers=owner_headers).status_code == 404


def test_issue_update_whitelist(client, owner_headers):
    aid = _mk_appliance(client, owner_headers, _mk_property(client, owner_headers))
    iid = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "Door", "description": "Sticks"},
        headers=owner_headers,
    ).json()["id"]

    r = client.put(f"/api/issues/{iid}", json={"appliance_id": 999, "bogus": True}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "No valid fields to update"

    r = client.put(f"/api/issues/{iid}", json={"status": "resolved", "resolution_notes": "Planed"}, headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "resolved"
    assert r.json()["resolved_date"] is not None
    assert _appliance(client, owner_headers, aid)["status"] == "working"


def test_double_delete_does_not_double_decrement(client, owner_headers):
    aid = _mk_appliance(client, owner_headers, _mk_property(client, owner_headers))
    ids = []
    for cost, day in ((100, "2026-01-10"), (40, "2026-02-10")):
        r = client.post(
            "/api/maintenance-records",
            json={"appliance_id": aid, "maintenance_type": "cleaning", "description": "Clean", "cost": cost, "maintenance_date": day},
            headers=owner_headers,
        )
        ids.append(r.json()["id"])

    assert client.delete(f"/api/maintenance-records/{ids[0]}", headers=owner_headers).status_code == 200
    after_once = _appliance(client, owner_headers, aid)
    assert after_once["maintenance_count"] == 1
    assert after_once["total_maintenance_cost"] == 40.0

    assert client.delete(f"/api/maintenance-records/{ids[0]}", headers=owner_headers).status_code == 404
    after_twice = _appliance(client, owner_headers, aid)
    assert after_twice["maintenance_count"] == 1
    assert after_twice["total_maintenance_cost"] == 40.0


def test_maintenance_validation(client, owner_headers):
    aid = _mk_appliance(client, owner_headers, _mk_property(client, owner_headers))
    base = {"appliance_id": aid, "maintenance_type": "routine", "description": "Check", "maintenance_date": "2026-03-01"}

    r = client.post("/api/maintenance-records", json={**base, "next_due_date": "2026-03-01"}, headers=owner_headers)
    assert r.status_code == 422

    r = client.post("/api/maintenance-records", json={**base, "warranty_until": "2026-02-01"}, headers=owner_headers)
    assert r.status_code == 422

    r = client.post("/api/maintenance-records", json={**base, "cost": -5}, headers=owner_headers)
    assert r.status_code == 422

    r = client.post("/api/maintenance-records", json={**base, "maintenance_type": "magic"}, headers=owner_headers)
    assert r.status_code == 422

    r = client.post("/api/maintenance-records", json={**base, "cost": ""}, headers=owner_headers)
    assert r.status_code == 201
    assert r.json()["cost"] is None


def test_maintenance_update_and_listing(client, owner_headers):
    pid = _mk_property(client, owner_headers, address="77 List Ln")
    aid = _mk_appliance(client, owner_headers, pid, name="Furnace")
    ids = []
    for day in ("2026-01-05", "2026-04-05", "2026-02-05"):
        r = client.post(
            "/api/maintenance-records",
            json={"appliance_id": aid, "maintenance_type": "inspection", "description": day, "cost": 10, "maintenance_date": day},
            headers=owner_headers,
        )
        ids.append(r.json()["id"])

    rows = client.get("/api/maintenance-records", params={"appliance_id": aid}, headers=owner_headers).json()
    assert [r["maintenance_date"] for r in rows] == ["2026-04-05", "2026-02-05", "2026-01-05"]
    assert rows[0]["appliance_name"] == "Furnace"
    assert rows[0]["property_address"] == "77 List Ln"

    assert len(client.get("/api/maintenance-records", params={"limit": 2}, headers=owner_headers).json()) == 2

    r = client.put(f"/api/maintenance-records/{ids[0]}", json={"nothing": 1}, headers=owner_headers)
    assert r.status_code == 400

    r = client.put(f"/api/maintenance-records/{ids[0]}", json={"cost": 60, "technician_name": "Sam"}, headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["technician_name"] == "Sam"
    assert _appliance(client, owner_headers, aid)["total_maintenance_cost"] == 80.0

    r = client.get(f"/api/maintenance-records/{ids[0]}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["cost"] == 60.0


def test_other_users_get_not_found(client, owner_headers, other_headers):
    pid = _mk_property(client, owner_headers)
    aid = _mk_appliance(client, owner_headers, pid)
    rid = client.post(
        "/api/maintenance-records",
        json={"appliance_id": aid, "maintenance_type": "routine", "description": "x", "maintenance_date": "2026-03-01"},
        headers=owner_headers,
    ).json()["id"]
    iid = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "t", "description": "d"},
        headers=owner_headers,
    ).json()["id"]

    r = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "sneaky", "description": "d"},
        headers=other_headers,
    )
    assert r.status_code == 404
    assert "not found or access denied" in r.json()["detail"]

    assert client.get(f"/api/properties/{pid}", headers=other_headers).status_code == 404
    assert client.get(f"/api/appliances/{aid}", headers=other_headers).status_code == 404
    assert client.get(f"/api/maintenance-records/{rid}", headers=other_headers).status_code == 404
    assert client.delete(f"/api/maintenance-records/{rid}", headers=other_headers).status_code == 404
    assert client.put(f"/api/issues/{iid}", json={"status": "resolved"}, headers=other_headers).status_code == 404
    assert client.get("/api/issues", headers=other_headers).json() == []

    # the owner's appliance is untouched
    a = _appliance(client, owner_headers, aid)
    assert a["maintenance_count"] == 1
    assert a["has_open_issues"] is True


def test_missing_identity_is_unauthorized(client):
    assert client.get("/api/properties").status_code == 401


def test_renaming_an_appliance_keeps_derived_state(client, owner_headers):
    aid = _mk_appliance(client, owner_headers, _mk_property(client, owner_headers), name="Fridge")
    client.post(
        "/api/maintenance-records",
        json={"appliance_id": aid, "maintenance_type": "routine", "description": "Coils", "cost": 35, "maintenance_date": "2026-03-01"},
        headers=owner_headers,
    )
    client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "Warm", "description": "Not cooling", "urgency": "critical"},
        headers=owner_headers,
    )

    r = client.put(f"/api/appliances/{aid}", json={"name": "Fridge 2"}, headers=owner_headers)
    assert r.status_code == 200, r.text

    a = _appliance(client, owner_headers, aid)
    assert a["name"] == "Fridge 2"
    assert a["type"] == "dishwasher"
    assert a["status"] == "out_of_service"
    assert a["has_open_issues"] is True
    assert a["urgency_level"] == "critical"
    assert a["last_maintenance"] == "2026-03-01"
    assert a["maintenance_count"] == 1
    assert a["total_maintenance_cost"] == 35.0

    # rollups are not client-writable
    r = client.put(f"/api/appliances/{aid}", json={"last_maintenance": None, "maintenance_count": 0}, headers=owner_headers)
    assert r.status_code == 400
    assert _appliance(client, owner_headers, aid)["last_maintenance"] == "2026-03-01"


def test_failed_maintenance_write_rolls_back_everything(client, owner_headers, monkeypatch):
    aid = _mk_appliance(client, owner_headers, _mk_property(client, owner_headers))
    iid = client.post(
        "/api/issues",
        json={"appliance_id": aid, "title": "Leak", "description": "Drips", "urgency": "high"},
        headers=owner_headers,
    ).json()["id"]

    def boom(db, *, record):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(appliance_state, "_auto_resolve_issues", boom)

    r = client.post(
        "/api/maintenance-records",
        json={"appliance_id": aid, "maintenance_type": "repair", "description": "Seal", "cost": 90, "maintenance_date": "2026-04-01"},
        headers=owner_headers,
    )
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to create maintenance record"

    assert client.get("/api/maintenance-records", params={"appliance_id": aid}, headers=owner_headers).json() == []

    a = _appliance(client, owner_headers, aid)
    assert a["maintenance_count"] == 0
    assert a["total_maintenance_cost"] == 0.0
    assert a["last_maintenance"] is None
    assert a["status"] == "needs_repair"
    assert a["has_open_issues"] is True

    issue = client.get(f"/api/issues/{iid}", headers=owner_headers).json()
    assert issue["status"] == "open"
    assert issue["maintenance_record_id"] is None
