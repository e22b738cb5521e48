from fastapi.testclient import TestClient

from timeledger.main import app

client = TestClient(app)


def _auth_headers(company_id: int, user_id: str = "alice", role: str = "EMPLOYEE") -> dict:
    r = client.post("/auth/token", json={"user_id": user_id, "company_id": company_id, "role": role})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    return {"X-Company-Id": str(company_id), "Authorization": f"Bearer {token}"}


def _manual(headers, start, end, **extra):
    body = {"start_time": start, "end_time": end}
    body.update(extra)
    return client.post("/time_entries/manual", json=body, headers=headers)


def test_start_stop_and_current():
    headers = _auth_headers(1)

    started = client.post("/time_entries/start", json={"description": "Planning", "tags": ["b", "a"]}, headers=headers)
    assert started.status_code == 201, started.text
    body = started.json()
    assert body["status"] == "running"
    assert body["duration"] is None
    assert body["tags"] == ["a", "b"]
    assert body["approval"]["status"] == "pending"
    entry_id = body["time_entry_id"]

    current = client.get("/time_entries/current", headers=headers)
    assert current.status_code == 200
    assert current.json()["time_entry_id"] == entry_id

    second = client.post("/time_entries/start", json={}, headers=headers)
    assert second.status_code == 409
    assert "already have a running timer" in second.json()["detail"]

    stopped = client.post(f"/time_entries/{entry_id}/stop", headers=headers)
    assert stopped.status_code == 200, stopped.text
    assert stopped.json()["status"] == "stopped"
    assert stopped.json()["duration"] >= 0

    again = client.post(f"/time_entries/{entry_id}/stop", headers=headers)
    assert again.status_code == 404

    assert client.get("/time_entries/current", headers=headers).json() is None


def test_pause_resume_records_breaks():
    headers = _auth_headers(1)
    entry_id = client.post("/time_entries/start", json={}, headers=headers).json()["time_entry_id"]

    paused = client.post(f"/time_entries/{entry_id}/pause", json={"break_type": "lunch"}, headers=headers)
    assert paused.status_code == 200, paused.text
    assert paused.json()["status"] == "paused"
    assert paused.json()["breaks"][0]["type"] == "lunch"
    assert paused.json()["breaks"][0]["end_time"] is None

    assert client.post(f"/time_entries/{entry_id}/pause", headers=headers).status_code == 404

    resumed = client.post(f"/time_entries/{entry_id}/resume", headers=headers)
    assert resumed.status_code == 200
    assert resumed.json()["status"] == "running"
    assert resumed.json()["breaks"][0]["end_time"] is not None

    activity = client.post(f"/time_entries/{entry_id}/activity", json={"keyboard": 12, "mouse": 3}, headers=headers)
    assert activity.status_code == 200
    assert activity.json()["activity"]["total"] == 15

    stopped = client.post(f"/time_entries/{entry_id}/stop", headers=headers)
    assert len(stopped.json()["breaks"]) == 1


def test_manual_entry_and_overlap():
    headers = _auth_headers(1)

    created = _manual(headers, "2024-01-01T09:00:00Z", "2024-01-01T17:00:00Z", rate="25")
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["duration"] == 28800
    assert body["formatted_duration"] == "08:00:00"
    assert body["manual"] is True
    assert body["billable_amount"] == "200.00"

    overlap = _manual(headers, "2024-01-01T12:00:00Z", "2024-01-01T13:00:00Z")
    assert overlap.status_code == 409
    assert overlap.json()["detail"] == "Time entry overlaps with existing entry"

    backwards = _manual(headers, "2024-01-02T17:00:00Z", "2024-01-02T09:00:00Z")
    assert backwards.status_code == 400
    assert backwards.json()["detail"] == "End time must be after start time"


def test_update_tracks_edits_and_rejects_derived_fields():
    headers = _auth_headers(1)
    entry_id = _manual(headers, "2024-01-03T09:00:00Z", "2024-01-03T10:00:00Z").json()["time_entry_id"]

    patched = client.patch(
        f"/time_entries/{entry_id}",
        json={"end_time": "2024-01-03T10:30:00Z", "description": "Standup", "edit_reason": "Ran long"},
        headers=headers,
    )
    assert patched.status_code == 200, patched.text
    body = patched.json()
    assert body["duration"] == 5400
    assert body["description"] == "Standup"
    assert body["edited"]["is_edited"] is True
    assert body["edited"]["original_duration"] == 3600
    assert body["edited"]["reason"] == "Ran long"

    derived = client.patch(f"/time_entries/{entry_id}", json={"duration": 5}, headers=headers)
    assert derived.status_code == 400

    unknown = client.patch(f"/time_entries/{entry_id}", json={"user_id": "bob"}, headers=headers)
    assert unknown.status_code == 422


def test_update_with_null_billable_or_tags_is_rejected():
    headers = _auth_headers(1)
    entry_id = _manual(
        headers, "2024-01-04T09:00:00Z", "2024-01-04T10:00:00Z", tags=["client"], billable=True
    ).json()["time_entry_id"]

    for body in ({"billable": None}, {"tags": None}):
        r = client.patch(f"/time_entries/{entry_id}", json=body, headers=headers)
        assert r.status_code == 400, r.text

    current = client.get(f"/time_entries/{entry_id}", headers=headers).json()
    assert current["billable"] is True
    assert current["tags"] == ["client"]


def test_delete_rules():
    headers = _auth_headers(1)
    running_id = client.post("/time_entries/start", json={}, headers=headers).json()["time_entry_id"]

    blocked = client.delete(f"/time_entries/{running_id}", headers=headers)
    assert blocked.status_code == 409
    assert blocked.json()["detail"] == "Cannot delete a running timer"

    client.post(f"/time_entries/{running_id}/stop", headers=headers)
    deleted = client.delete(f"/time_entries/{running_id}", headers=headers)
    assert deleted.status_code == 204

    assert client.get(f"/time_entries/{running_id}", headers=headers).status_code == 404


def test_entries_scoped_to_owner_company_and_role():
    alice = _auth_headers(1, user_id="alice")
    bob = _auth_headers(1, user_id="bob")
    manager = _auth_headers(1, user_id="mgr", role="MANAGER")
    outsider = _auth_headers(2, user_id="alice")

    entry_id = _manual(alice, "2024-01-04T09:00:00Z", "2024-01-04T10:00:00Z").json()["time_entry_id"]
    _manual(bob, "2024-01-04T09:00:00Z", "2024-01-04T11:00:00Z")

    assert client.get(f"/time_entries/{entry_id}", headers=alice).status_code == 200
    assert client.get(f"/time_entries/{entry_id}", headers=bob).status_code == 404
    assert client.get(f"/time_entries/{entry_id}", headers=outsider).status_code == 404
    assert client.get(f"/time_entries/{entry_id}", headers=manager).status_code == 200

    own = client.get("/time_entries", params={"user_id": "bob"}, headers=alice)
    assert own.status_code == 200
    assert [r["time_entry_id"] for r in own.json()["rows"]] == [entry_id]
    assert own.json()["totals"]["total_hours"] == "1.00"

    everyone = client.get("/time_entries", headers=manager)
    assert everyone.json()["totals"]["count"] == 2
    assert everyone.json()["totals"]["total_hours"] == "3.00"

    assert client.get("/time_entries", headers=outsider).json()["rows"] == []


def test_start_with_foreign_project_is_not_found(project_factory):
    foreign = project_factory(company_id=2)
    headers = _auth_headers(1)

    r = client.post("/time_entries/start", json={"project_id": foreign.project_id}, headers=headers)

    assert r.status_code == 404
    assert r.json()["detail"] == "Project not found"
