from __future__ import annotations

from typing import Any, Mapping

from ...db.mongo.errors import StoreConflict
from ...db.mongo.ids import parse_object_id, to_public, utcnow
from ...errors import BusinessRuleViolation, Conflict, NotFound
from ...observability.logging import get_logger
from ...query.builder import QuerySpec, list_resource
from ...schemas.common import to_document, validate_payload
from ...schemas.toys import BorrowerIn
from ...services.resource import actor_id
from .borrowings import borrower_filter
from .status import active_filter, present_borrowings
from .store import ToyLendingStore

log = get_logger("toy_lending.borrowers")

BORROWER_QUERY = QuerySpec(
    default_sort="name",
    search_fields=("name", "email", "phone"),
)

PAST_BORROWINGS_LIMIT = 5
DUPLICATE_EMAIL = "Borrower with this email already exists"


def load_borrower(store: ToyLendingStore, borrower_id: Any) -> dict[str, Any]:
    oid = parse_object_id(borrower_id)
    doc = store.borrowers.get(oid) if oid is not None else None
    if not doc:
        raise NotFound(message="Borrower not found")
    return doc


def _borrowings_of(borrower: Mapping[str, Any]) -> dict[str, Any]:
    return borrower_filter(borrower_id=borrower.get("_id"), email=borrower.get("email"))


def list_borrowers(store: ToyLendingStore, params: Mapping[str, Any]) -> dict[str, Any]:
    result = list_resource(store.borrowers, params, BORROWER_QUERY)
    now = utcnow()
    items = []
    for b in result.items:
        owned = _borrowings_of(b)
        item = to_public(b)
        item["activeBorrowings"] = store.borrowings.count({**owned, **active_filter()})
        item["overdueBorrowings"] = store.borrowings.count(
            {**owned, **active_filter(dueDate={"$lt": now})}
        )
        items.append(item)
    return {"items": items, "result": result}


def get_borrower(store: ToyLendingStore, borrower_id: Any) -> dict[str, Any]:
    borrower = load_borrower(store, borrower_id)
    owned = _borrowings_of(borrower)
    active = store.borrowings.find({**owned, **active_filter()}, sort=[("dueDate", 1), ("_id", 1)])
    past = store.borrowings.find(
        {**owned, "returnDate": {"$exists": True}},
        sort=[("returnDate", -1), ("_id", 1)],
        limit=PAST_BORROWINGS_LIMIT,
    )
    return {
        "borrower": to_public(borrower),
        "activeBorrowings": present_borrowings(store, active),
        "pastBorrowings": present_borrowings(store, past),
    }


def create_borrower(store: ToyLendingStore, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    payload = validate_payload(BorrowerIn, data)
    doc = to_document(payload)
    doc["email"] = str(payload.email).lower()
    if store.borrowers.exists({"email": doc["email"]}):
        raise Conflict(message=DUPLICATE_EMAIL)
    doc["createdBy"] = actor_id(actor)
    try:
        created = store.borrowers.insert_one(doc)
    except StoreConflict:
        raise Conflict(message=DUPLICATE_EMAIL)
    log.info("borrower_created", borrower_id=str(created["_id"]), user_sub=actor_id(actor))
    return created


def update_borrower(
    store: ToyLendingStore,
    borrower_id: Any,
    patch: dict[str, Any],
    *,
    actor: Any = None,
) -> dict[str, Any]:
    current = load_borrower(store, borrower_id)
    payload = validate_payload(BorrowerIn, {**current, **patch})
    fields = to_document(payload)
    fields["email"] = str(payload.email).lower()
    if fields["email"] != current.get("email") and store.borrowers.exists(
        {"email": fields["email"], "_id": {"$ne": current["_id"]}}
    ):
        raise Conflict(message=DUPLICATE_EMAIL)
    fields["updatedBy"] = actor_id(actor)
    try:
        updated = store.borrowers.set_fields(current["_id"], fields)
    except StoreConflict:
        raise Conflict(message=DUPLICATE_EMAIL)
    if updated is None:
        raise NotFound(message="Borrower not found")
    return updated


def delete_borrower(store: ToyLendingStore, borrower_id: Any, *, actor: Any = None) -> None:
    borrower = load_borrower(store, borrower_id)
    if store.borrowings.exists({**_borrowings_of(borrower), **active_filter()}):
        raise BusinessRuleViolation(message="Cannot delete borrower with active borrowings")
    store.borrowers.delete_by_id(borrower["_id"])
    log.info("borrower_deleted", borrower_id=str(borrower["_id"]), user_sub=actor_id(actor))


def borrower_stats(store: ToyLendingStore) -> dict[str, Any]:
    rows = store.borrowers.aggregate(
        [
            {"$group": {"_id": "$relationship", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ]
    )
    return {
        "totalBorrowers": store.borrowers.count(),
        "borrowersByRelationship": [{"_id": r["_id"], "count": int(r["count"])} for r in rows],
        "activeBorrowings": store.borrowings.count(active_filter()),
        "overdueBorrowings": store.borrowings.count(active_filter(dueDate={"$lt": utcnow()})),
    }
