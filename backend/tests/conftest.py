from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import mongomock
import pytest

# Ensure `backend/` is on sys.path so `import clinic.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))


def _future_iso(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


TOKENS = {
    "admin-token": {"sub": "admin-1", "cognito:username": "admin", "email": "admin@clinic.test", "cognito:groups": ["admin"]},
    "staff-token": {"sub": "staff-1", "cognito:username": "staff", "email": "staff@clinic.test", "cognito:groups": ["staff"]},
    "user-token": {"sub": "user-1", "cognito:username": "alice", "email": "alice@example.com"},
    "other-token": {"sub": "user-2", "cognito:username": "bob", "email": "bob@example.com"},
    "member-token": {
        "sub": "member-1",
        "cognito:username": "carol",
        "email": "carol@example.com",
        "custom:membership": "premium",
        "custom:subscriptionEnd": _future_iso(),
    },
}


class FakeStorage:
    def __init__(self):
        self.uploaded: list[dict] = []
        self.deleted: list[str] = []
        self.fail_delete = False

    def upload_file(self, data, folder, *, file_name="", content_type=None):
        public_id = f"{folder}/{len(self.uploaded) + 1}-{file_name}"
        self.uploaded.append({"publicId": public_id, "size": len(data), "contentType": content_type})
        return {"url": f"https://media.test/{public_id}", "publicId": public_id}

    def delete_file(self, public_id):
        from clinic.errors import UpstreamError

        if self.fail_delete:
            raise UpstreamError(message="Media delete failed", service="s3")
        self.deleted.append(public_id)


class FakeNotifier:
    def __init__(self, fail_for: set[str] | None = None):
        self.sent: list[dict] = []
        self.fail_for = fail_for or set()

    def send_email(self, *, to, subject, html):
        from clinic.errors import UpstreamError

        if to in self.fail_for:
            raise UpstreamError(message="Email delivery failed", service="ses")
        self.sent.append({"to": to, "subject": subject, "html": html})


@pytest.fixture(autouse=True)
def db():
    from clinic.db.mongo.client import bind_database
    from clinic.db.mongo.indexes import ensure_indexes

    database = mongomock.MongoClient()["clinic_test"]
    bind_database(database)
    ensure_indexes(database)
    yield database
    bind_database(None)


@pytest.fixture
def fake_auth(monkeypatch):
    from clinic.auth.cognito import CognitoAuthError, VerifiedUser
    from clinic.middleware import auth as auth_mw

    def _verify(token: str) -> VerifiedUser:
        claims = TOKENS.get(token)
        if claims is None:
            raise CognitoAuthError("invalid token")
        return VerifiedUser.from_claims(claims)

    monkeypatch.setattr(auth_mw, "verify_bearer_token", _verify)
    return _verify


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(fake_auth, storage, notifier):
    from fastapi.testclient import TestClient

    from clinic.infrastructure.email import get_notifier
    from clinic.infrastructure.storage import get_storage
    from clinic.main import create_app

    app = create_app()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    return TestClient(app)
