from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from bson import ObjectId

OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # The store hands back naive UTC datetimes unless tz_aware is set.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value: datetime | None) -> str | None:
    dt = as_utc(value)
    if dt is None:
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_object_id(value: Any) -> bool:
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and bool(OBJECT_ID_RE.match(value))


def parse_object_id(value: Any) -> ObjectId | None:
    """Coerce a 24-hex string (or ObjectId) into an ObjectId, else None."""
    if isinstance(value, ObjectId):
        return value
    s = str(value or "").strip()
    if not OBJECT_ID_RE.match(s):
        return None
    return ObjectId(s)


def parse_object_ids(values: Any) -> list[ObjectId] | None:
    """All-or-nothing conversion; None when any element is malformed."""
    out: list[ObjectId] = []
    for v in values or []:
        oid = parse_object_id(v)
        if oid is None:
            return None
        out.append(oid)
    return out


def to_public(value: Any) -> Any:
    """Render a stored document as JSON-safe data.

    ObjectIds become hex strings, datetimes become ISO-8601 UTC, and every
    document with an `_id` also gets an `id` alias.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        out = {str(k): to_public(v) for k, v in value.items()}
        if "_id" in out and "id" not in out:
            out["id"] = out["_id"]
        return out
    if isinstance(value, (list, tuple)):
        return [to_public(v) for v in value]
    return value
