from __future__ import annotations

import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError, ServerSelectionTimeoutError


def test_unsafe_inbound_request_id_is_replaced():
    from clinic.middleware.request_context import resolve_request_id

    assert resolve_request_id("abc-123") == "abc-123"
    replaced = resolve_request_id("bad id\nwith newline")
    assert replaced != "bad id\nwith newline"
    assert len(replaced) == 32
    assert len(resolve_request_id(None)) == 32


def test_settings_normalize_environment_and_limits(monkeypatch):
    from clinic.settings import Settings

    monkeypatch.setenv("NODE_ENV", "Prod")
    monkeypatch.setenv("DEFAULT_PAGE_LIMIT", "500")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("COGNITO_USER_POOL_ID", raising=False)
    s = Settings()
    assert s.environment == "production"
    assert s.is_production
    assert s.default_page_limit == s.max_page_limit == 100
    assert s.log_level == "DEBUG"
    assert "COGNITO_USER_POOL_ID" in s.missing_production_settings()
    with pytest.raises(RuntimeError):
        s.require_in_production()
    assert "mongodb_uri" not in s.to_log_safe_dict()


def test_store_error_classification():
    from clinic.db.mongo.errors import StoreConflict, StoreUnavailable
    from clinic.db.mongo.retry import to_store_error

    dup = to_store_error(DuplicateKeyError("E11000 index: name_1", code=11000), operation="insert_one")
    assert isinstance(dup, StoreConflict)
    assert dup.message == "Duplicate field value entered"
    assert "name_1" not in dup.message

    flaky = to_store_error(AutoReconnect("primary stepped down"), operation="find")
    assert isinstance(flaky, StoreUnavailable) and flaky.retryable

    down = to_store_error(ServerSelectionTimeoutError("no servers"), operation="find")
    assert isinstance(down, StoreUnavailable) and not down.retryable


def test_mongo_call_retries_only_transient_errors(monkeypatch):
    from clinic.db.mongo import retry
    from clinic.db.mongo.errors import StoreConflict

    monkeypatch.setattr(retry.time, "sleep", lambda _: None)
    calls = {"n": 0}

    def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise AutoReconnect("blip")
        return "ok"

    assert retry.mongo_call("find", flaky) == "ok"
    assert calls["n"] == 3

    def duplicate():
        calls["n"] += 1
        raise DuplicateKeyError("dup", code=11000)

    calls["n"] = 0
    with pytest.raises(StoreConflict):
        retry.mongo_call("insert_one", duplicate)
    assert calls["n"] == 1


def test_verified_user_from_claims():
    from clinic.auth.cognito import VerifiedUser

    user = VerifiedUser.from_claims(
        {
            "sub": "u-9",
            "email": "dana@example.com",
            "cognito:groups": ["Admin"],
            "custom:membership": "gold",
            "custom:subscriptionEnd": "2001-01-01T00:00:00Z",
        }
    )
    assert user.username == "dana@example.com"
    assert user.is_admin
    assert not user.is_subscribed


def test_mongo_call_fails_fast_on_server_selection_timeout(monkeypatch):
    from clinic.db.mongo import retry
    from clinic.db.mongo.errors import StoreUnavailable

    monkeypatch.setattr(retry.time, "sleep", lambda _: None)
    calls = {"n": 0}

    def unreachable():
        calls["n"] += 1
        raise ServerSelectionTimeoutError("no servers")

    with pytest.raises(StoreUnavailable) as exc_info:
        retry.mongo_call("find", unreachable)
    assert calls["n"] == 1
    assert not exc_info.value.retryable
