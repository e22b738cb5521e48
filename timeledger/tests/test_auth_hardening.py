import os

import jwt
from fastapi.testclient import TestClient

from timeledger.main import app

client = TestClient(app)


def _mint_token(user_id="dev-user", company_id=1, role="EMPLOYEE") -> str:
    # /auth/token requires JWT_SECRET
    os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-pytest-only-0000000000000000")
    r = client.post("/auth/token", json={"user_id": user_id, "company_id": company_id, "role": role})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def _headers(token: str, company_id=1) -> dict:
    return {"Authorization": f"Bearer {token}", "X-Company-Id": str(company_id)}


def test_missing_authorization_header_401():
    r = client.post("/time_entries/start", json={}, headers={"X-Company-Id": "1"})
    assert r.status_code == 401


def test_wrong_scheme_401():
    token = _mint_token()
    r = client.post(
        "/time_entries/start",
        json={},
        headers={"Authorization": f"Basic {token}", "X-Company-Id": "1"},
    )
    assert r.status_code == 401


def test_garbled_bearer_token_401():
    r = client.post(
        "/time_entries/start",
        json={},
        headers={"Authorization": "Bearer not-a-real-token", "X-Company-Id": "1"},
    )
    assert r.status_code == 401


def test_token_signed_with_other_secret_401():
    forged = jwt.encode(
        {"sub": "mallory", "company_id": 1, "role": "ADMIN"},
        "some-other-secret-that-is-long-enough-000000",
        algorithm="HS256",
    )
    r = client.get("/time_entries", headers=_headers(forged))
    assert r.status_code == 401


def test_missing_company_header_403():
    token = _mint_token()
    r = client.post("/time_entries/start", json={}, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403
    assert "X-Company-Id" in r.text


def test_company_mismatch_403():
    token = _mint_token(company_id=1)
    r = client.post("/time_entries/start", json={}, headers=_headers(token, company_id=2))
    assert r.status_code == 403
    assert "Company mismatch" in r.text


def test_unknown_role_claim_403():
    token = jwt.encode(
        {"sub": "dev-user", "company_id": 1, "role": "OWNER"},
        os.environ["JWT_SECRET"],
        algorithm="HS256",
    )
    r = client.get("/time_entries", headers=_headers(token))
    assert r.status_code == 403


def test_employee_cannot_reach_manager_routes():
    token = _mint_token(role="EMPLOYEE")
    r = client.post("/employees", json={"name": "Eve"}, headers=_headers(token))
    assert r.status_code == 403
    assert "Insufficient role" in r.text
