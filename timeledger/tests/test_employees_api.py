from fastapi.testclient import TestClient

from timeledger.main import app

client = TestClient(app)


def _auth_headers(company_id: int, role: str = "MANAGER") -> dict:
    resp = client.post("/auth/token", json={"user_id": "test", "company_id": company_id, "role": role})
    assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
    data = resp.json()
    assert "access_token" in data, f"token response missing access_token: {data}"
    return {"X-Company-Id": str(company_id), "Authorization": f"Bearer {data['access_token']}"}


def test_employees_create_list_get_and_cross_company_isolation():
    company_1 = 11001
    company_2 = 11002

    create = client.post(
        "/employees",
        headers=_auth_headers(company_1),
        json={"name": "Alice", "hourly_rate": "22.50", "currency": "eur"},
    )
    assert create.status_code == 200, create.text
    created = create.json()
    employee_id = created["employee_id"]
    assert created["company_id"] == company_1
    assert created["name"] == "Alice"
    assert created["currency"] == "EUR"
    assert created["is_active"] is True

    listing = client.get("/employees", headers=_auth_headers(company_1, role="EMPLOYEE"))
    assert listing.status_code == 200
    assert any(row["employee_id"] == employee_id for row in listing.json())

    get_own = client.get(f"/employees/{employee_id}", headers=_auth_headers(company_1))
    assert get_own.status_code == 200
    assert get_own.json()["employee_id"] == employee_id

    get_other = client.get(f"/employees/{employee_id}", headers=_auth_headers(company_2))
    assert get_other.status_code == 404

    assert client.get("/employees", headers=_auth_headers(company_2)).json() == []


def test_projects_and_tasks_are_company_scoped():
    manager_1 = _auth_headers(1)
    manager_2 = _auth_headers(2)

    project = client.post("/projects", json={"name": "Website"}, headers=manager_1)
    assert project.status_code == 200, project.text
    project_id = project.json()["project_id"]

    task = client.post(f"/projects/{project_id}/tasks", json={"title": "Landing page"}, headers=manager_1)
    assert task.status_code == 200, task.text
    assert task.json()["project_id"] == project_id

    foreign = client.post(f"/projects/{project_id}/tasks", json={"title": "Nope"}, headers=manager_2)
    assert foreign.status_code == 404

    assert [p["project_id"] for p in client.get("/projects", headers=manager_1).json()] == [project_id]
    assert client.get("/projects", headers=manager_2).json() == []

    started = client.post(
        "/time_entries/start",
        json={"project_id": project_id, "task_id": task.json()["task_id"]},
        headers=_auth_headers(1, role="EMPLOYEE"),
    )
    assert started.status_code == 201, started.text


def test_project_detail_reports_hours_per_task():
    manager = _auth_headers(1)
    employee = _auth_headers(1, role="EMPLOYEE")

    project_id = client.post("/projects", json={"name": "Website"}, headers=manager).json()["project_id"]
    design = client.post(f"/projects/{project_id}/tasks", json={"title": "Design"}, headers=manager).json()
    client.post(f"/projects/{project_id}/tasks", json={"title": "QA"}, headers=manager)

    logged = client.post(
        "/time_entries/manual",
        json={
            "start_time": "2024-01-02T09:00:00Z",
            "end_time": "2024-01-02T11:30:00Z",
            "project_id": project_id,
            "task_id": design["task_id"],
            "rate": "40",
        },
        headers=employee,
    )
    assert logged.status_code == 201, logged.text

    started = client.post("/time_entries/start", json={"project_id": project_id}, headers=employee)
    assert started.status_code == 201, started.text

    r = client.get(f"/projects/{project_id}", headers=employee)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["name"] == "Website"
    assert body["totals"]["count"] == 2
    assert body["totals"]["total_hours"] == "2.50"
    assert body["totals"]["billable_amount"] == "100.00"
    assert body["totals"]["last_activity"].startswith("2024-01-02T11:30:00")

    tasks = {t["title"]: t["totals"] for t in body["tasks"]}
    assert tasks["Design"]["total_hours"] == "2.50"
    assert tasks["QA"]["count"] == 0

    assert client.get(f"/projects/{project_id}", headers=_auth_headers(2)).status_code == 404
