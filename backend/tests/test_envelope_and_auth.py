from __future__ import annotations

ADMIN = {"Authorization": "Bearer admin-token"}
USER = {"Authorization": "Bearer user-token"}


def test_health_is_public_and_carries_request_id(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"
    assert r.headers.get("X-Request-Id")


def test_request_id_is_propagated_into_error_body(client):
    r = client.get("/api/toys", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 401
    assert r.headers.get("X-Request-Id") == "abc-123"
    body = r.json()
    assert body == {"success": False, "error": "Not authorized to access this route", "requestId": "abc-123"}


def test_unknown_route_is_enveloped_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Route /nope not found"
    assert body["requestId"]


def test_invalid_token_is_401(client):
    r = client.get("/api/toys", headers={"Authorization": "Bearer forged"})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_malformed_authorization_header_is_401(client):
    r = client.get("/api/toys", headers={"Authorization": "Token abc"})
    assert r.status_code == 401


def test_role_mismatch_is_403(client):
    r = client.get("/api/toys", headers=USER)
    assert r.status_code == 403
    assert r.json()["error"] == "User role user is not authorized to access this route"


def test_admin_only_write_on_public_resource(client):
    payload = {"name": "Sensory", "categoryType": "Therapy Type"}
    assert client.post("/api/categories", json=payload).status_code == 401
    assert client.post("/api/categories", json=payload, headers=USER).status_code == 403
    r = client.post("/api/categories", json=payload, headers=ADMIN)
    assert r.status_code == 201
    assert r.json()["data"]["name"] == "Sensory"


def test_validation_failure_lists_fields_in_order(client):
    r = client.post("/api/categories", json={"categoryType": "Nope"}, headers=ADMIN)
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    fields = [e["field"] for e in body["errors"]]
    assert fields == ["name", "categoryType"]


def test_malformed_json_body_is_400(client):
    r = client.post(
        "/api/categories",
        content=b"{not json",
        headers={**ADMIN, "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_malformed_id_is_404(client):
    r = client.get("/api/categories/not-an-id")
    assert r.status_code == 404
    assert r.json()["error"] == "Category not found"


def test_duplicate_key_from_store_is_400_without_index_details(client):
    assert client.post("/api/categories", json={"name": "Dup"}, headers=ADMIN).status_code == 201

    r = client.post("/api/categories", json={"name": "Dup"}, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == "Duplicate field value entered"
    assert "index" not in r.text
