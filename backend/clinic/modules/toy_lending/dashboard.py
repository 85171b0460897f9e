"""
Front-desk views over the lending data: counters, borrower lookups,
reminders, and the smart search used by the return screen.
"""

from __future__ import annotations

import html
import re
from typing import Any

from ...db.mongo.ids import as_utc, to_public, utcnow
from ...errors import BusinessRuleViolation, NotFound, ValidationFailed
from ...infrastructure.email import NotificationCollaborator
from ...observability.logging import get_logger
from ...schemas.common import validate_payload
from ...schemas.toys import ProcessReturnIn, ReminderIn
from . import borrowings as borrowing_ops
from .status import active_filter, due_soon_window, is_overdue, present_borrowings
from .store import ToyLendingStore

log = get_logger("toy_lending.dashboard")

BORROWED_LIST_LIMIT = 50
BORROWER_HISTORY_LIMIT = 20
BORROWER_FIELDS = ("borrowerName", "email", "phone")

_NEWEST_FIRST = [("issueDate", -1), ("_id", 1)]


def _contains(term: str, fields: tuple[str, ...]) -> dict[str, Any]:
    pattern = re.escape(term)
    return {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in fields]}


def dashboard_stats(store: ToyLendingStore) -> dict[str, int]:
    now = utcnow()
    start, end = due_soon_window(now)
    return {
        "toysAvailable": store.units.count({"isAvailable": True}),
        "toysBorrowed": store.borrowings.count(active_filter()),
        "dueSoon": store.borrowings.count(active_filter(dueDate={"$gte": start, "$lte": end})),
        "overdue": store.borrowings.count(active_filter(dueDate={"$lt": now})),
    }


def borrowed_toys(store: ToyLendingStore, search: str | None = None) -> list[dict[str, Any]]:
    query = active_filter()
    term = (search or "").strip()
    if term:
        query.update(_contains(term, BORROWER_FIELDS))
    rows = store.borrowings.find(query, sort=_NEWEST_FIRST, limit=BORROWED_LIST_LIMIT)
    return present_borrowings(store, rows)


def _reminder_html(borrowing: dict[str, Any], toy_name: str) -> str:
    due = as_utc(borrowing.get("dueDate"))
    due_text = due.strftime("%d %B %Y") if due else "soon"
    name = html.escape(str(borrowing.get("borrowerName") or "there"))
    toy = html.escape(toy_name)
    if is_overdue(borrowing):
        line = f"<p>The toy <strong>{toy}</strong> was due back on {due_text} and is now overdue.</p>"
    else:
        line = f"<p>The toy <strong>{toy}</strong> is due back on {due_text}.</p>"
    return (
        f"<p>Hello {name},</p>"
        f"{line}"
        "<p>Please return it to the clinic at your earliest convenience.</p>"
        "<p>Thank you!</p>"
    )


def send_reminder(
    store: ToyLendingStore,
    notifier: NotificationCollaborator,
    data: dict[str, Any],
    *,
    email: str | None = None,
) -> dict[str, Any]:
    payload = validate_payload(ReminderIn, data)
    borrowing = store.borrowings.get(payload.borrowingId)
    if not borrowing:
        raise NotFound(message="Borrowing not found")
    if email is not None and str(borrowing.get("email") or "").lower() != email.strip().lower():
        raise BusinessRuleViolation(message="Borrowing does not belong to this borrower")
    if borrowing.get("returnDate") is not None:
        raise BusinessRuleViolation(message="Toy is not currently borrowed")

    toy = store.toys.get(borrowing["toyId"], projection={"name": 1}) or {}
    toy_name = str(toy.get("name") or "borrowed toy")
    notifier.send_email(
        to=str(borrowing["email"]),
        subject=f"Reminder: please return {toy_name}",
        html=_reminder_html(borrowing, toy_name),
    )
    log.info("toy_reminder_sent", borrowing_id=str(borrowing["_id"]), overdue=is_overdue(borrowing))
    return {"message": "Reminder sent successfully", "borrowing": to_public(borrowing)}


def process_return(
    store: ToyLendingStore,
    borrowing_id: Any,
    data: dict[str, Any],
    *,
    actor: Any = None,
) -> dict[str, Any]:
    payload = validate_payload(ProcessReturnIn, data)
    returned = borrowing_ops.process_return(
        store,
        borrowing_id,
        condition=payload.conditionOnReturn,
        notes=payload.returnNotes,
        actor=actor,
    )
    return present_borrowings(store, [returned])[0]


# --- borrower views ---


def _group_by_email(rows: list[dict[str, Any]], now) -> dict[str, dict[str, Any]]:
    groups: dict[str, dict[str, Any]] = {}
    for b in rows:
        key = str(b.get("email") or "").lower()
        g = groups.get(key)
        if g is None:
            g = groups[key] = {
                "email": key,
                "borrowerName": b.get("borrowerName"),
                "phone": b.get("phone"),
                "relationship": b.get("relationship"),
                "borrowerId": to_public(b.get("borrowerId")),
                "totalBorrowings": 0,
                "activeBorrowings": 0,
                "overdueBorrowings": 0,
                "lastBorrowDate": None,
                "_rows": [],
            }
        g["totalBorrowings"] += 1
        if b.get("returnDate") is None:
            g["activeBorrowings"] += 1
            if is_overdue(b, now):
                g["overdueBorrowings"] += 1
        issued = as_utc(b.get("issueDate"))
        if issued is not None and (g["lastBorrowDate"] is None or issued > g["lastBorrowDate"]):
            g["lastBorrowDate"] = issued
        g["_rows"].append(b)
    return groups


def borrower_overview(store: ToyLendingStore, search: str | None = None) -> list[dict[str, Any]]:
    """One row per borrower email, newest activity first."""
    query: dict[str, Any] = {}
    term = (search or "").strip()
    if term:
        query = _contains(term, BORROWER_FIELDS)
    now = utcnow()
    groups = _group_by_email(store.borrowings.find(query, sort=_NEWEST_FIRST), now)

    out = []
    for g in groups.values():
        g.pop("_rows")
        out.append(to_public(g))
    out.sort(key=lambda g: g.get("lastBorrowDate") or "", reverse=True)
    return out


def borrower_by_email(store: ToyLendingStore, email: str) -> dict[str, Any]:
    key = str(email or "").strip().lower()
    borrower = store.borrowers.find_one({"email": key}) if key else None
    owned = borrowing_ops.borrower_filter(
        borrower_id=borrower["_id"] if borrower else None,
        email=key,
    )
    history = store.borrowings.find(owned, sort=_NEWEST_FIRST, limit=BORROWER_HISTORY_LIMIT)
    if borrower is None and not history:
        raise NotFound(message="Borrower not found")

    if borrower is not None:
        info = to_public(borrower)
    else:
        latest = history[0]
        info = {
            "name": latest.get("borrowerName"),
            "email": key,
            "phone": latest.get("phone"),
            "relationship": latest.get("relationship"),
        }

    active = store.borrowings.find({**owned, **active_filter()}, sort=[("dueDate", 1), ("_id", 1)])
    return {
        "borrowerInfo": info,
        "activeBorrowings": present_borrowings(store, active),
        "borrowingHistory": present_borrowings(store, history),
        "totalBorrowings": store.borrowings.count(owned),
    }


def borrower_by_borrowing(store: ToyLendingStore, borrowing_id: Any) -> dict[str, Any]:
    borrowing = borrowing_ops.load_borrowing(store, borrowing_id, message="Borrowing not found")
    borrower = store.borrowers.get(borrowing["borrowerId"]) if borrowing.get("borrowerId") else None
    info = to_public(borrower) if borrower else {
        "name": borrowing.get("borrowerName"),
        "email": borrowing.get("email"),
        "phone": borrowing.get("phone"),
        "relationship": borrowing.get("relationship"),
    }
    return {"borrowerInfo": info, "borrowing": present_borrowings(store, [borrowing])[0]}


# --- smart search ---


def smart_search(store: ToyLendingStore, term: str | None) -> dict[str, Any]:
    """
    Borrower first, then toy.

    Phase 1 matches active borrowings on borrower name, email or phone and
    returns the borrower (grouped by email) with the most matches. Only when
    no borrower matches does phase 2 look up a toy by name or category and
    return its active borrowings, which may be empty.
    """
    t = (term or "").strip()
    if not t:
        raise ValidationFailed.for_field("searchTerm", "Search term is required")

    now = utcnow()
    matches = store.borrowings.find(
        {**active_filter(), **_contains(t, BORROWER_FIELDS)},
        sort=[("dueDate", 1), ("_id", 1)],
    )
    if matches:
        groups = _group_by_email(matches, now)
        # Ties go to the borrower seen first (earliest due date).
        best = max(groups.values(), key=lambda g: len(g["_rows"]))
        rows = best.pop("_rows")
        return {
            "searchType": "borrower",
            "borrowerInfo": {
                "name": best["borrowerName"],
                "email": best["email"],
                "phone": best["phone"],
                "relationship": best["relationship"],
                "borrowerId": best["borrowerId"],
            },
            "activeBorrowings": present_borrowings(store, rows, now=now),
        }

    toy = store.toys.find_one(_contains(t, ("name", "category")), sort=[("name", 1), ("_id", 1)])
    if toy:
        rows = store.borrowings.find(active_filter(toyId=toy["_id"]), sort=[("dueDate", 1), ("_id", 1)])
        return {
            "searchType": "toy",
            "toyInfo": to_public(toy),
            "activeBorrowings": present_borrowings(store, rows, now=now),
        }

    return {"searchType": "none", "activeBorrowings": []}
