from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any

from ...db.mongo.ids import as_utc, to_public, utcnow
from ...settings import settings
from .store import ToyLendingStore

# Borrowings still out: no return recorded yet.
ACTIVE = {"returnDate": {"$exists": False}}


def active_filter(**extra: Any) -> dict[str, Any]:
    return {**ACTIVE, **extra}


def due_soon_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    start = now or utcnow()
    return start, start + timedelta(days=int(settings.toy_due_soon_days))


def is_overdue(borrowing: dict[str, Any], now: datetime | None = None) -> bool:
    if borrowing.get("returnDate") is not None:
        return False
    due = as_utc(borrowing.get("dueDate"))
    return due is not None and due < (now or utcnow())


def calculated_status(borrowing: dict[str, Any], now: datetime | None = None) -> str:
    """
    Status derived from dates rather than the stored field:
      Active | Due Soon | Overdue | Returned On Time | Returned Late (N Days)
    Lost and Damaged are kept as recorded.
    """
    now = now or utcnow()
    due = as_utc(borrowing.get("dueDate"))
    returned = as_utc(borrowing.get("returnDate"))

    if returned is not None:
        if due is None or returned <= due:
            return "Returned On Time"
        days = math.ceil((returned - due).total_seconds() / 86400)
        return f"Returned Late ({days} Days)"

    if borrowing.get("status") in ("Lost", "Damaged"):
        return str(borrowing["status"])
    if due is None:
        return "Active"
    if due < now:
        return "Overdue"
    if due <= due_soon_window(now)[1]:
        return "Due Soon"
    return "Active"


def append_note(previous: str | None, note: str) -> str:
    prev = str(previous or "").strip()
    return f"{prev}. {note}" if prev else note


def present_borrowings(
    store: ToyLendingStore,
    borrowings: list[dict[str, Any]],
    *,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Render borrowings with their toy and unit summaries and derived status."""
    now = now or utcnow()
    toy_ids = list({b["toyId"] for b in borrowings if b.get("toyId") is not None})
    unit_ids = list({b["toyUnitId"] for b in borrowings if b.get("toyUnitId") is not None})

    toys = {}
    if toy_ids:
        for t in store.toys.find({"_id": {"$in": toy_ids}}, projection={"name": 1, "category": 1, "image": 1}):
            toys[t["_id"]] = t
    units = {}
    if unit_ids:
        for u in store.units.find({"_id": {"$in": unit_ids}}, projection={"unitNumber": 1, "condition": 1}):
            units[u["_id"]] = u

    out: list[dict[str, Any]] = []
    for b in borrowings:
        item = to_public(b)
        toy = toys.get(b.get("toyId"))
        unit = units.get(b.get("toyUnitId"))
        item["toy"] = to_public(toy) if toy else None
        item["unit"] = to_public(unit) if unit else None
        item["isOverdue"] = is_overdue(b, now)
        item["calculatedStatus"] = calculated_status(b, now)
        out.append(item)
    return out


def present_borrowing(store: ToyLendingStore, borrowing: dict[str, Any]) -> dict[str, Any]:
    return present_borrowings(store, [borrowing])[0]
