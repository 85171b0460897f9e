from __future__ import annotations

from datetime import datetime, timedelta, timezone

ADMIN = {"Authorization": "Bearer admin-token"}
USER = {"Authorization": "Bearer user-token"}
OTHER = {"Authorization": "Bearer other-token"}
MEMBER = {"Authorization": "Bearer member-token"}


def _future(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _course(client) -> str:
    body = {
        "title": "Parenting Basics",
        "description": "Foundations for new parents",
        "price": 49,
        "thumbnail": "https://media.test/course.png",
        "category": "parenting",
    }
    r = client.post("/api/courses", json=body, headers=ADMIN)
    assert r.status_code == 201, r.text
    return r.json()["data"]["id"]


def _webinar(client, *, seats: int = 2) -> str:
    body = {
        "title": "Sleep Routines",
        "speaker": "Dr. Rao",
        "date": _future(),
        "duration": 60,
        "startTime": "18:00",
        "maxRegistrations": seats,
    }
    r = client.post("/api/webinars", json=body, headers=ADMIN)
    assert r.status_code == 201, r.text
    return r.json()["data"]["id"]


def _workshop(client, *, seats: int = 5) -> str:
    body = {
        "title": "Mindful Mornings",
        "description": "Breathing and movement",
        "instructor": "Sam",
        "date": _future(),
        "startTime": "09:00",
        "endTime": "11:00",
        "location": "Studio 2",
        "maxParticipants": seats,
        "price": 30,
        "category": "mindfulness",
    }
    r = client.post("/api/workshops", json=body, headers=ADMIN)
    assert r.status_code == 201, r.text
    return r.json()["data"]["id"]


def test_feedback_one_per_user_and_item(client):
    course = _course(client)
    body = {"itemType": "course", "itemId": course, "rating": 5, "comment": "Great"}

    r = client.post("/api/feedback", json=body, headers=USER)
    assert r.status_code == 201, r.text
    created = r.json()["data"]
    assert created["user"] == "user-1"
    assert created["username"] == "alice"

    dup = client.post("/api/feedback", json=body, headers=USER)
    assert dup.status_code == 400
    assert dup.json()["error"] == "You have already submitted feedback for this course"

    detail = client.get(f"/api/courses/{course}").json()["data"]
    assert detail["ratingsCount"] == 1
    assert detail["averageRating"] == 5


def test_feedback_requires_existing_item_and_login(client):
    body = {"itemType": "webinar", "itemId": "0123456789abcdef01234567", "rating": 3}
    assert client.post("/api/feedback", json=body).status_code == 401

    r = client.post("/api/feedback", json=body, headers=USER)
    assert r.status_code == 404
    assert r.json()["error"] == "Webinar not found"

    bad = client.post("/api/feedback", json={**body, "rating": 9}, headers=USER)
    assert bad.status_code == 400
    assert bad.json()["errors"][0]["field"] == "rating"


def test_feedback_owner_rules(client):
    course = _course(client)
    fid = client.post(
        "/api/feedback", json={"itemType": "course", "itemId": course, "rating": 2}, headers=USER
    ).json()["data"]["id"]

    r = client.put(f"/api/feedback/{fid}", json={"rating": 1}, headers=OTHER)
    assert r.status_code == 403
    assert r.json()["error"] == "User user-2 is not authorized to update this feedback"

    mine = client.put(f"/api/feedback/{fid}", json={"rating": 4, "comment": "Better now"}, headers=USER)
    assert mine.status_code == 200
    assert mine.json()["data"]["rating"] == 4

    assert client.delete(f"/api/feedback/{fid}", headers=OTHER).status_code == 403
    assert client.delete(f"/api/feedback/{fid}", headers=ADMIN).status_code == 200


def test_ratings_summary_and_publish_toggle(client):
    course = _course(client)
    client.post("/api/feedback", json={"itemType": "course", "itemId": course, "rating": 5}, headers=USER)
    fid = client.post(
        "/api/feedback", json={"itemType": "course", "itemId": course, "rating": 4}, headers=OTHER
    ).json()["data"]["id"]

    detail = client.get(f"/api/courses/{course}").json()["data"]
    assert detail["averageRating"] == 4.5
    assert detail["ratingsCount"] == 2

    client.put(f"/api/feedback/{fid}/publish", headers=ADMIN)
    public = client.get(f"/api/feedback/item/course/{course}").json()
    assert public["count"] == 1

    ratings = client.get(f"/api/courses/{course}/ratings").json()["data"]
    assert len(ratings["feedback"]) == 1

    mine = client.get("/api/feedback/me", headers=OTHER).json()
    assert mine["count"] == 1

    assert client.get("/api/feedback", headers=USER).status_code == 403
    assert client.get("/api/feedback", headers=ADMIN).json()["total"] == 2


def test_course_videos(client):
    course = _course(client)
    r = client.post(f"/api/courses/{course}/videos", json={"url": "https://media.test/v1.mp4"}, headers=ADMIN)
    assert r.status_code == 201
    videos = r.json()["data"]["videos"]
    assert len(videos) == 1

    gone = client.delete(f"/api/courses/{course}/videos/{videos[0]['videoId']}", headers=ADMIN)
    assert gone.json()["data"]["videos"] == []

    missing = client.delete(f"/api/courses/{course}/videos/0123456789abcdef01234567", headers=ADMIN)
    assert missing.status_code == 404
    assert missing.json()["error"] == "Video not found"


def test_webinar_registration_rules(client):
    wid = _webinar(client, seats=2)

    r = client.post(f"/api/webinars/{wid}/register", headers=USER)
    assert r.status_code == 200
    assert r.json()["data"]["availableSlots"] == 1

    again = client.post(f"/api/webinars/{wid}/register", headers=USER)
    assert again.status_code == 400
    assert again.json()["error"] == "You are already registered for this webinar"

    assert client.post(f"/api/webinars/{wid}/register", headers=OTHER).status_code == 200
    full = client.post(f"/api/webinars/{wid}/register", headers=MEMBER)
    assert full.status_code == 400
    assert full.json()["error"] == "Webinar registration is full"

    mine = client.get("/api/webinars/user-webinars", headers=USER).json()
    assert [w["id"] for w in mine["data"]] == [wid]
    assert client.get(f"/api/webinars/user-webinars/{wid}", headers=MEMBER).status_code == 404

    regs = client.get(f"/api/webinars/{wid}/registrations", headers=ADMIN).json()
    assert [row["user"] for row in regs["data"]] == ["user-1", "user-2"]
    assert client.get(f"/api/webinars/{wid}/registrations", headers=USER).status_code == 403

    assert client.delete(f"/api/webinars/{wid}/register", headers=USER).status_code == 200
    not_registered = client.delete(f"/api/webinars/{wid}/register", headers=USER)
    assert not_registered.status_code == 400


def test_upcoming_webinars_only_scheduled(client):
    wid = _webinar(client)
    other = _webinar(client)
    client.put(f"/api/webinars/{other}/status", json={"status": "cancelled"}, headers=ADMIN)

    r = client.get("/api/webinars/upcoming")
    assert [w["id"] for w in r.json()["data"]] == [wid]


def test_workshop_registration_requires_subscription(client):
    wid = _workshop(client, seats=1)

    r = client.post(f"/api/workshops/{wid}/register", headers=USER)
    assert r.status_code == 403
    assert r.json()["error"] == "Only subscribed users can register for workshops."

    joined = client.post(f"/api/workshops/{wid}/register", headers=MEMBER)
    assert joined.status_code == 200
    assert joined.json()["data"]["availableSpots"] == 0

    again = client.post(f"/api/workshops/{wid}/register", headers=MEMBER)
    assert again.status_code == 400
    assert again.json()["error"] == "You are already registered for this workshop."

    # Admins skip the subscription check but not the capacity check.
    full = client.post(f"/api/workshops/{wid}/register", headers=ADMIN)
    assert full.status_code == 400
    assert full.json()["error"] == "This workshop has reached full capacity."


def test_workshop_admin_views(client):
    wid = _workshop(client)
    assert client.get("/api/workshops/all", headers=USER).status_code == 403
    listed = client.get("/api/workshops/all", headers=ADMIN).json()
    assert listed["count"] == 1

    detail = client.get(f"/api/workshops/admin/{wid}", headers=ADMIN).json()["data"]
    assert detail["availableSpots"] == 5


def test_webinar_last_seat_is_guarded_by_the_store(client, monkeypatch):
    from clinic.services.webinars import webinars

    wid = _webinar(client, seats=1)
    before = webinars.load(wid)
    assert client.post(f"/api/webinars/{wid}/register", headers=USER).status_code == 200

    # A racing request that read the webinar before the first seat was taken.
    real_load = webinars.load
    stale = {"served": False}

    def load_once_stale(item_id):
        if not stale["served"]:
            stale["served"] = True
            return before
        return real_load(item_id)

    monkeypatch.setattr(webinars, "load", load_once_stale)
    r = client.post(f"/api/webinars/{wid}/register", headers=OTHER)
    assert r.status_code == 400
    assert r.json()["error"] == "Webinar registration is full"

    regs = client.get(f"/api/webinars/{wid}/registrations", headers=ADMIN).json()["data"]
    assert [row["user"] for row in regs] == ["user-1"]


def test_workshop_participant_count_is_not_writable(client):
    body = {
        "title": "Mindful Mornings",
        "description": "Breathing and movement",
        "instructor": "Sam",
        "date": _future(),
        "startTime": "09:00",
        "endTime": "11:00",
        "location": "Studio 2",
        "maxParticipants": 5,
        "currentParticipants": 4,
        "price": 30,
        "category": "mindfulness",
    }
    wid = client.post("/api/workshops", json=body, headers=ADMIN).json()["data"]["id"]
    assert client.get(f"/api/workshops/admin/{wid}", headers=ADMIN).json()["data"]["availableSpots"] == 5

    client.post(f"/api/workshops/{wid}/register", headers=MEMBER)
    r = client.put(f"/api/workshops/{wid}", json={"title": "Mindful Mornings II", "currentParticipants": 0}, headers=ADMIN)
    assert r.status_code == 200, r.text
    detail = client.get(f"/api/workshops/admin/{wid}", headers=ADMIN).json()["data"]
    assert detail["title"] == "Mindful Mornings II"
    assert detail["currentParticipants"] == 1
    assert detail["availableSpots"] == 4
