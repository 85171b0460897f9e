from __future__ import annotations

from datetime import datetime, timedelta, timezone

STAFF = {"Authorization": "Bearer staff-token"}


def _iso(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _toy(client, name: str, category: str = "Puzzles", units: int = 3) -> str:
    r = client.post("/api/toys", json={"name": name, "category": category, "units": units}, headers=STAFF)
    return r.json()["data"]["toy"]["id"]


def _issue(client, toy_id: str, *, name="Jane Doe", email="jane@example.com", phone="555-0100", **extra) -> dict:
    payload = {
        "toyId": toy_id,
        "borrowerName": name,
        "phone": phone,
        "email": email,
        "relationship": "Mother",
        "dueDate": _iso(14),
    }
    payload.update(extra)
    r = client.post("/api/toys/borrowings", json=payload, headers=STAFF)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_dashboard_counters(client):
    toy_id = _toy(client, "Shape Sorter")
    _issue(client, toy_id, dueDate=_iso(1))
    _issue(client, toy_id, issueDate=_iso(-9), dueDate=_iso(-2))

    r = client.get("/api/toy-dashboard/dashboard/stats", headers=STAFF)
    assert r.status_code == 200
    assert r.json()["data"] == {"toysAvailable": 1, "toysBorrowed": 2, "dueSoon": 1, "overdue": 1}


def test_borrowed_toys_search(client):
    toy_id = _toy(client, "Shape Sorter")
    _issue(client, toy_id)
    _issue(client, toy_id, name="Sam Lee", email="sam@example.com", phone="555-0199")

    r = client.get("/api/toy-dashboard/dashboard/borrowed-toys", params={"search": "0199"}, headers=STAFF)
    body = r.json()
    assert body["count"] == 1
    assert body["data"][0]["borrowerName"] == "Sam Lee"
    assert body["data"][0]["toy"]["name"] == "Shape Sorter"


def test_send_reminder_uses_notifier(client, notifier):
    toy_id = _toy(client, "Shape Sorter")
    late = _issue(client, toy_id, issueDate=_iso(-9), dueDate=_iso(-2))

    r = client.post("/api/toy-dashboard/dashboard/send-reminder", json={"borrowingId": late["id"]}, headers=STAFF)
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Reminder sent successfully"

    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent["to"] == "jane@example.com"
    assert sent["subject"] == "Reminder: please return Shape Sorter"
    assert "overdue" in sent["html"]


def test_send_reminder_rules(client, notifier):
    toy_id = _toy(client, "Shape Sorter")
    b = _issue(client, toy_id)

    r = client.post(
        "/api/toy-dashboard/borrowers/someone@example.com/send-reminder",
        json={"borrowingId": b["id"]},
        headers=STAFF,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Borrowing does not belong to this borrower"

    missing = client.post(
        "/api/toy-dashboard/dashboard/send-reminder",
        json={"borrowingId": "0123456789abcdef01234567"},
        headers=STAFF,
    )
    assert missing.status_code == 404

    notifier.fail_for.add("jane@example.com")
    failed = client.post("/api/toy-dashboard/dashboard/send-reminder", json={"borrowingId": b["id"]}, headers=STAFF)
    assert failed.status_code == 502
    assert notifier.sent == []

    notifier.fail_for.clear()
    client.put(f"/api/toy-dashboard/dashboard/process-return/{b['id']}", headers=STAFF)
    returned = client.post("/api/toy-dashboard/dashboard/send-reminder", json={"borrowingId": b["id"]}, headers=STAFF)
    assert returned.status_code == 400
    assert returned.json()["error"] == "Toy is not currently borrowed"


def test_process_return_defaults_and_rejects_repeat(client):
    toy_id = _toy(client, "Shape Sorter", units=1)
    b = _issue(client, toy_id)

    r = client.put(f"/api/toy-dashboard/dashboard/process-return/{b['id']}", headers=STAFF)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["status"] == "Returned"
    assert data["conditionOnReturn"] == "Good"

    again = client.put(
        f"/api/toy-dashboard/dashboard/process-return/{b['id']}",
        json={"conditionOnReturn": "Fair", "returnNotes": "late"},
        headers=STAFF,
    )
    assert again.status_code == 400
    assert again.json()["error"] == "Toy is not currently borrowed"

    missing = client.put("/api/toy-dashboard/dashboard/process-return/0123456789abcdef01234567", headers=STAFF)
    assert missing.status_code == 404
    assert missing.json()["error"] == "Borrowing not found"


def test_smart_search_prefers_borrower_with_most_matches(client):
    toy_id = _toy(client, "Shape Sorter")
    _issue(client, toy_id)
    _issue(client, toy_id)
    _issue(client, toy_id, name="Janet Smith", email="janet@example.com", phone="555-0142")

    r = client.get("/api/toy-dashboard/process-return/smart-search", params={"searchTerm": "jan"}, headers=STAFF)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["searchType"] == "borrower"
    assert data["borrowerInfo"]["email"] == "jane@example.com"
    assert data["borrowerInfo"]["name"] == "Jane Doe"
    assert len(data["activeBorrowings"]) == 2


def test_smart_search_falls_back_to_toy(client):
    busy = _toy(client, "Bead Maze", category="Motor Skills")
    _toy(client, "Stacking Rings", category="Stacking")
    _issue(client, busy)

    r = client.get("/api/toy-dashboard/process-return/smart-search", params={"searchTerm": "motor"}, headers=STAFF)
    data = r.json()["data"]
    assert data["searchType"] == "toy"
    assert data["toyInfo"]["name"] == "Bead Maze"
    assert len(data["activeBorrowings"]) == 1

    idle = client.get("/api/toy-dashboard/process-return/smart-search", params={"searchTerm": "rings"}, headers=STAFF)
    data = idle.json()["data"]
    assert data["searchType"] == "toy"
    assert data["activeBorrowings"] == []


def test_smart_search_nothing_found_and_empty_term(client):
    r = client.get("/api/toy-dashboard/process-return/smart-search", params={"searchTerm": "zzz"}, headers=STAFF)
    assert r.json()["data"] == {"searchType": "none", "activeBorrowings": []}

    empty = client.get("/api/toy-dashboard/process-return/smart-search", params={"searchTerm": "  "}, headers=STAFF)
    assert empty.status_code == 400
    assert empty.json()["errors"][0]["field"] == "searchTerm"


def test_borrower_views(client):
    toy_id = _toy(client, "Shape Sorter")
    b = _issue(client, toy_id)
    _issue(client, toy_id, name="Sam Lee", email="sam@example.com")
    client.put(f"/api/toys/borrowings/{b['id']}/return", json={"conditionOnReturn": "Good"}, headers=STAFF)
    _issue(client, toy_id)

    overview = client.get("/api/toy-dashboard/borrowers", headers=STAFF).json()
    assert overview["count"] == 2
    jane = next(row for row in overview["data"] if row["email"] == "jane@example.com")
    assert (jane["totalBorrowings"], jane["activeBorrowings"]) == (2, 1)

    detail = client.get("/api/toy-dashboard/borrowers/Jane@Example.com", headers=STAFF).json()["data"]
    assert detail["borrowerInfo"]["name"] == "Jane Doe"
    assert detail["totalBorrowings"] == 2
    assert len(detail["activeBorrowings"]) == 1

    by_borrowing = client.get(f"/api/toy-dashboard/borrowings/{b['id']}/borrower", headers=STAFF).json()["data"]
    assert by_borrowing["borrowerInfo"]["email"] == "jane@example.com"

    missing = client.get("/api/toy-dashboard/borrowers/nobody@example.com", headers=STAFF)
    assert missing.status_code == 404


def test_toy_details(client):
    toy_id = _toy(client, "Shape Sorter", units=2)
    _issue(client, toy_id)

    data = client.get(f"/api/toy-dashboard/toys/{toy_id}/details", headers=STAFF).json()["data"]
    assert data["totalBorrowings"] == 1
    assert data["activeBorrowings"] == 1
    assert len(data["units"]) == 2

    units = client.get(f"/api/toy-dashboard/toys/{toy_id}/available-units", headers=STAFF).json()
    assert [u["unitNumber"] for u in units["data"]] == [2]


def test_process_multiple_returns(client):
    toy_id = _toy(client, "Shape Sorter")
    b1 = _issue(client, toy_id)
    b2 = _issue(client, toy_id)

    r = client.post(
        "/api/toy-dashboard/process-return/process-multiple",
        json={"borrowingIds": [b1["id"], b2["id"]], "conditionOnReturn": "Fair"},
        headers=STAFF,
    )
    body = r.json()
    assert body["success"] is True
    assert body["processedCount"] == 2
    assert body["errors"] == []

    active = client.get("/api/toy-dashboard/process-return/active-borrowings", headers=STAFF).json()
    assert active["count"] == 0


def test_borrower_registry(client):
    payload = {"name": "Pat Kim", "phone": "555-0111", "email": "Pat@Example.com", "relationship": "Guardian"}
    r = client.post("/api/borrowers", json=payload, headers=STAFF)
    assert r.status_code == 201
    borrower = r.json()["data"]
    assert borrower["email"] == "pat@example.com"

    dup = client.post("/api/borrowers", json={**payload, "email": "PAT@example.com"}, headers=STAFF)
    assert dup.status_code == 400
    assert dup.json()["error"] == "Borrower with this email already exists"

    toy_id = _toy(client, "Shape Sorter")
    b = _issue(client, toy_id, name="Pat Kim", email="pat@example.com", relationship="Guardian")
    assert b["borrowerId"] == borrower["id"]

    listed = client.get("/api/borrowers", headers=STAFF).json()
    assert listed["data"][0]["activeBorrowings"] == 1

    stats = client.get("/api/borrowers/stats", headers=STAFF).json()["data"]
    assert stats["totalBorrowers"] == 1
    assert stats["borrowersByRelationship"] == [{"_id": "Guardian", "count": 1}]
    assert stats["activeBorrowings"] == 1

    blocked = client.delete(f"/api/borrowers/{borrower['id']}", headers=STAFF)
    assert blocked.status_code == 400
    assert blocked.json()["error"] == "Cannot delete borrower with active borrowings"

    client.put(f"/api/toys/borrowings/{b['id']}/return", json={"conditionOnReturn": "Good"}, headers=STAFF)
    detail = client.get(f"/api/borrowers/{borrower['id']}", headers=STAFF).json()["data"]
    assert len(detail["pastBorrowings"]) == 1
    assert detail["activeBorrowings"] == []

    assert client.delete(f"/api/borrowers/{borrower['id']}", headers=STAFF).status_code == 200


def test_toy_routes_require_staff(client):
    r = client.get("/api/toy-dashboard/dashboard/stats", headers={"Authorization": "Bearer user-token"})
    assert r.status_code == 403


def test_process_multiple_with_nothing_returned_is_400(client):
    r = client.post(
        "/api/toy-dashboard/process-return/process-multiple",
        json={"borrowingIds": ["0123456789abcdef01234567"]},
        headers=STAFF,
    )
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["processedCount"] == 0
    assert body["errors"][0]["borrowingId"] == "0123456789abcdef01234567"
