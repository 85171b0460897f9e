from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from ...db.mongo.errors import StoreConflict
from ...db.mongo.ids import parse_object_id, utcnow
from ...errors import AppError, BusinessRuleViolation, NotFound
from ...observability.logging import get_logger
from ...query.builder import ListResult, QuerySpec, list_resource
from ...schemas.common import validate_payload
from ...schemas.toys import BorrowingStatusIn, BulkReturnIn, IssueToyIn, ReturnToyIn
from ...services.resource import actor_id
from .status import ACTIVE, active_filter, append_note
from .store import ToyLendingStore
from .toys import load_toy, recount_units

log = get_logger("toy_lending.borrowings")

BORROWING_QUERY = QuerySpec(
    default_sort="dueDate",
    search_fields=("borrowerName", "email", "phone"),
    field_types={
        "issueDate": "date",
        "dueDate": "date",
        "returnDate": "date",
        "toyId": "objectid",
        "toyUnitId": "objectid",
        "borrowerId": "objectid",
    },
)

NOT_FOUND = "Borrowing record not found"
ALREADY_RETURNED = "This toy has already been returned"


def load_borrowing(store: ToyLendingStore, borrowing_id: Any, *, message: str = NOT_FOUND) -> dict[str, Any]:
    oid = parse_object_id(borrowing_id)
    doc = store.borrowings.get(oid) if oid is not None else None
    if not doc:
        raise NotFound(message=message)
    return doc


def _claim_unit(store: ToyLendingStore, toy: dict[str, Any], unit_id: Any) -> dict[str, Any]:
    """Flip one unit from available to borrowed; the filter makes it a compare-and-set."""
    if unit_id is not None:
        unit = store.units.get(unit_id)
        if not unit or unit.get("toyId") != toy["_id"]:
            raise NotFound(message="Toy unit not found")
        claimed = store.units.find_one_and_update(
            {"_id": unit["_id"], "isAvailable": True},
            {"$set": {"isAvailable": False}},
        )
        if claimed is None:
            raise BusinessRuleViolation(message="This toy unit is already borrowed")
        return claimed

    claimed = store.units.find_one_and_update(
        {"toyId": toy["_id"], "isAvailable": True},
        {"$set": {"isAvailable": False}},
        sort=[("unitNumber", 1)],
    )
    if claimed is None:
        raise BusinessRuleViolation(message="No available unit for this toy")
    return claimed


def _release_unit(store: ToyLendingStore, unit_id: Any, *, condition: str | None = None) -> None:
    update: dict[str, Any] = {"$set": {"isAvailable": True}, "$unset": {"currentBorrowing": ""}}
    if condition:
        update["$set"]["condition"] = condition
    store.units.find_one_and_update({"_id": unit_id}, update)


def upsert_borrower(store: ToyLendingStore, payload: IssueToyIn, *, actor: Any = None) -> dict[str, Any]:
    email = str(payload.email).lower()
    seed = {
        "name": payload.borrowerName,
        "phone": payload.phone,
        "relationship": payload.relationship,
        "createdBy": actor_id(actor),
    }
    try:
        doc = store.borrowers.find_one_and_update({"email": email}, {"$setOnInsert": seed}, upsert=True)
    except StoreConflict:
        # Lost an insert race on the unique email index; the winner's row is fine.
        doc = store.borrowers.find_one({"email": email})
    if not doc:
        raise NotFound(message="Borrower not found")
    return doc


def issue_toy(store: ToyLendingStore, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    payload = validate_payload(IssueToyIn, data)
    toy = load_toy(store, payload.toyId)
    unit = _claim_unit(store, toy, payload.toyUnitId)

    try:
        borrower = upsert_borrower(store, payload, actor=actor)
        doc: dict[str, Any] = {
            "toyId": toy["_id"],
            "toyUnitId": unit["_id"],
            "borrowerId": borrower["_id"],
            "borrowerName": payload.borrowerName,
            "phone": payload.phone,
            "email": str(payload.email).lower(),
            "relationship": payload.relationship,
            "issueDate": payload.issueDate or utcnow(),
            "dueDate": payload.dueDate,
            "status": "Borrowed",
            "conditionOnIssue": unit.get("condition") or "Good",
            "issuedBy": actor_id(actor),
        }
        if payload.notes:
            doc["notes"] = payload.notes
        borrowing = store.borrowings.insert_one(doc)
    except Exception:
        _release_unit(store, unit["_id"])
        raise

    store.units.set_fields(unit["_id"], {"currentBorrowing": borrowing["_id"]})
    recount_units(store, toy["_id"])
    log.info(
        "toy_issued",
        borrowing_id=str(borrowing["_id"]),
        toy_id=str(toy["_id"]),
        unit_number=unit.get("unitNumber"),
        borrower_id=str(borrower["_id"]),
        user_sub=actor_id(actor),
    )
    return borrowing


def _return_one(
    store: ToyLendingStore,
    borrowing_id: Any,
    *,
    condition: str | None,
    notes: str | None = None,
    note_label: str = "Return notes",
    return_date: datetime | None = None,
    actor: Any = None,
) -> dict[str, Any]:
    borrowing = load_borrowing(store, borrowing_id)
    if borrowing.get("returnDate") is not None:
        raise BusinessRuleViolation(message=ALREADY_RETURNED)

    fields: dict[str, Any] = {
        "returnDate": return_date or utcnow(),
        "status": "Returned",
        "returnProcessedBy": actor_id(actor),
    }
    if condition:
        fields["conditionOnReturn"] = condition
    if notes:
        fields["notes"] = append_note(borrowing.get("notes"), f"{note_label}: {notes}")

    updated = store.borrowings.find_one_and_update(
        {"_id": borrowing["_id"], **ACTIVE},
        {"$set": fields},
    )
    if updated is None:
        raise BusinessRuleViolation(message=ALREADY_RETURNED)

    _release_unit(store, borrowing["toyUnitId"], condition=condition)
    recount_units(store, borrowing["toyId"])
    log.info(
        "toy_returned",
        borrowing_id=str(borrowing["_id"]),
        toy_id=str(borrowing["toyId"]),
        condition=condition,
        user_sub=actor_id(actor),
    )
    return updated


def return_toy(store: ToyLendingStore, borrowing_id: Any, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    payload = validate_payload(ReturnToyIn, data)
    return _return_one(
        store,
        borrowing_id,
        condition=payload.conditionOnReturn,
        notes=payload.notes,
        return_date=payload.returnDate,
        actor=actor,
    )


def process_return(
    store: ToyLendingStore,
    borrowing_id: Any,
    *,
    condition: str,
    notes: str | None = None,
    actor: Any = None,
) -> dict[str, Any]:
    """Dashboard return: only borrowings still marked out may be processed."""
    borrowing = load_borrowing(store, borrowing_id, message="Borrowing not found")
    if borrowing.get("status") not in ("Borrowed", "Overdue") or borrowing.get("returnDate") is not None:
        raise BusinessRuleViolation(message="Toy is not currently borrowed")
    return _return_one(store, borrowing["_id"], condition=condition, notes=notes, actor=actor)


def bulk_return(store: ToyLendingStore, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    """Return several borrowings in order; one failure never aborts the rest."""
    payload = validate_payload(BulkReturnIn, data)
    returned: list[dict[str, Any]] = []
    errors: list[dict[str, str]] = []

    for raw_id in payload.borrowingIds:
        try:
            returned.append(
                _return_one(
                    store,
                    raw_id,
                    condition=payload.conditionOnReturn,
                    notes=payload.notes,
                    actor=actor,
                )
            )
        except AppError as e:
            errors.append({"borrowingId": raw_id, "error": e.message})

    log.info(
        "bulk_return_processed",
        processed=len(returned),
        total=len(payload.borrowingIds),
        failed=len(errors),
        user_sub=actor_id(actor),
    )
    return {
        "success": len(returned) > 0,
        "processedCount": len(returned),
        "totalCount": len(payload.borrowingIds),
        "data": returned,
        "errors": errors,
    }


def update_status(store: ToyLendingStore, borrowing_id: Any, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    payload = validate_payload(BorrowingStatusIn, data)
    borrowing = load_borrowing(store, borrowing_id)
    returned = borrowing.get("returnDate") is not None

    if payload.status == "Returned" and not returned:
        unit = store.units.get(borrowing["toyUnitId"]) or {}
        return _return_one(
            store,
            borrowing["_id"],
            condition=unit.get("condition"),
            notes=payload.notes,
            note_label="Status update",
            actor=actor,
        )
    if returned and payload.status in ("Borrowed", "Overdue"):
        raise BusinessRuleViolation(message=ALREADY_RETURNED)

    fields: dict[str, Any] = {"status": payload.status}
    if payload.notes:
        fields["notes"] = append_note(borrowing.get("notes"), f"Status update: {payload.notes}")
    updated = store.borrowings.set_fields(borrowing["_id"], fields)
    log.info("borrowing_status_updated", borrowing_id=str(borrowing["_id"]), status=payload.status)
    return updated or borrowing


def refresh_overdue(store: ToyLendingStore) -> int:
    """Flip stale Borrowed rows to Overdue. Idempotent; meant for an external sweep."""
    modified = store.borrowings.update_many(
        active_filter(dueDate={"$lt": utcnow()}, status="Borrowed"),
        {"$set": {"status": "Overdue"}},
    )
    log.info("overdue_refreshed", modified=modified)
    return modified


# --- reads ---


def list_active(store: ToyLendingStore, params: Mapping[str, Any]) -> ListResult:
    return list_resource(store.borrowings, params, BORROWING_QUERY, base_filter=dict(ACTIVE))


def list_overdue(store: ToyLendingStore) -> list[dict[str, Any]]:
    return store.borrowings.find(
        active_filter(dueDate={"$lt": utcnow()}),
        sort=[("dueDate", 1), ("_id", 1)],
    )


def toy_history(store: ToyLendingStore, toy_id: Any) -> list[dict[str, Any]]:
    toy = load_toy(store, toy_id)
    return store.borrowings.find({"toyId": toy["_id"]}, sort=[("issueDate", -1), ("_id", 1)])


def borrower_filter(*, borrower_id: Any = None, email: str | None = None) -> dict[str, Any]:
    """Match borrowings by borrower id, falling back to email for rows issued before ids existed."""
    clauses: list[dict[str, Any]] = []
    if borrower_id is not None:
        clauses.append({"borrowerId": borrower_id})
    if email:
        clauses.append({"email": str(email).lower()})
    if not clauses:
        return {"_id": None}
    if len(clauses) == 1:
        return clauses[0]
    return {"$or": clauses}


def email_history(store: ToyLendingStore, email: str) -> list[dict[str, Any]]:
    return store.borrowings.find(borrower_filter(email=email), sort=[("issueDate", -1), ("_id", 1)])
