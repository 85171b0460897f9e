from __future__ import annotations

import re
from typing import Any, Mapping

from ...db.mongo.errors import StoreConflict
from ...db.mongo.ids import parse_object_id, to_public
from ...errors import BusinessRuleViolation, Conflict, NotFound, ValidationFailed
from ...observability.logging import get_logger
from ...query.builder import ListResult, QuerySpec, list_resource
from ...schemas.common import to_document, validate_payload
from ...schemas.toys import ToyCreateIn, ToyIn, ToyUnitIn, ToyUnitUpdateIn
from ...services.resource import actor_id
from .status import active_filter, present_borrowings
from .store import ToyLendingStore

log = get_logger("toy_lending.toys")

TOY_QUERY = QuerySpec(
    default_sort="name",
    search_fields=("name", "category"),
    field_types={"totalUnits": "int", "availableUnits": "int"},
)

SEARCH_LIMIT = 10
DETAIL_HISTORY_LIMIT = 10


def load_toy(store: ToyLendingStore, toy_id: Any) -> dict[str, Any]:
    oid = parse_object_id(toy_id)
    toy = store.toys.get(oid) if oid is not None else None
    if not toy:
        raise NotFound(message="Toy not found")
    return toy


def load_unit(store: ToyLendingStore, unit_id: Any, *, message: str = "Toy unit not found") -> dict[str, Any]:
    oid = parse_object_id(unit_id)
    unit = store.units.get(oid) if oid is not None else None
    if not unit:
        raise NotFound(message=message)
    return unit


def recount_units(store: ToyLendingStore, toy_id: Any) -> dict[str, Any] | None:
    """Recompute totalUnits / availableUnits from the toy's units."""
    total = store.units.count({"toyId": toy_id})
    available = store.units.count({"toyId": toy_id, "isAvailable": True})
    return store.toys.set_fields(toy_id, {"totalUnits": total, "availableUnits": available})


def list_toys(store: ToyLendingStore, params: Mapping[str, Any]) -> ListResult:
    query = dict(params)
    availability = query.pop("availability", None)
    if isinstance(availability, list):
        availability = availability[-1] if availability else None

    base: dict[str, Any] | None = None
    if availability == "available":
        base = {"availableUnits": {"$gt": 0}}
    elif availability == "unavailable":
        base = {"availableUnits": 0}
    elif availability not in (None, ""):
        raise ValidationFailed.for_field("availability", "availability must be available or unavailable")

    return list_resource(store.toys, query, TOY_QUERY, base_filter=base)


def toy_with_units(store: ToyLendingStore, toy_id: Any) -> dict[str, Any]:
    toy = load_toy(store, toy_id)
    units = store.units.find({"toyId": toy["_id"]}, sort=[("unitNumber", 1)])
    history = store.borrowings.find({"toyId": toy["_id"]}, sort=[("issueDate", -1), ("_id", 1)])
    return {
        "toy": to_public(toy),
        "units": to_public(units),
        "borrowingHistory": present_borrowings(store, history),
    }


def toy_details(store: ToyLendingStore, toy_id: Any) -> dict[str, Any]:
    toy = load_toy(store, toy_id)
    units = store.units.find({"toyId": toy["_id"]}, sort=[("unitNumber", 1)])
    history = store.borrowings.find(
        {"toyId": toy["_id"]},
        sort=[("issueDate", -1), ("_id", 1)],
        limit=DETAIL_HISTORY_LIMIT,
    )
    current = store.borrowings.find(active_filter(toyId=toy["_id"]), sort=[("issueDate", -1), ("_id", 1)])
    return {
        "toy": to_public(toy),
        "units": to_public(units),
        "borrowingHistory": present_borrowings(store, history),
        "currentBorrowings": present_borrowings(store, current),
        "totalBorrowings": store.borrowings.count({"toyId": toy["_id"]}),
        "activeBorrowings": len(current),
    }


def create_toy(store: ToyLendingStore, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    payload = validate_payload(ToyCreateIn, data)
    doc = to_document(payload)
    units = int(doc.pop("units", 0) or 0)
    doc.update({"totalUnits": 0, "availableUnits": 0, "createdBy": actor_id(actor)})

    toy = store.toys.insert_one(doc)
    if units > 0:
        store.units.insert_many(
            [
                {"toyId": toy["_id"], "unitNumber": n, "condition": "Good", "isAvailable": True}
                for n in range(1, units + 1)
            ]
        )
        toy = recount_units(store, toy["_id"]) or toy

    log.info("toy_created", toy_id=str(toy["_id"]), units=units, user_sub=actor_id(actor))
    return toy


def update_toy(store: ToyLendingStore, toy_id: Any, patch: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
    toy = load_toy(store, toy_id)
    payload = validate_payload(ToyIn, {**toy, **patch})
    fields = to_document(payload)
    fields["updatedBy"] = actor_id(actor)
    updated = store.toys.set_fields(toy["_id"], fields)
    if updated is None:
        raise NotFound(message="Toy not found")
    return updated


def delete_toy(store: ToyLendingStore, toy_id: Any, *, actor: Any = None) -> None:
    toy = load_toy(store, toy_id)
    if store.borrowings.exists(active_filter(toyId=toy["_id"])):
        raise BusinessRuleViolation(message="Cannot delete toy with active borrowings")
    removed = store.units.delete_many({"toyId": toy["_id"]})
    store.toys.delete_by_id(toy["_id"])
    log.info("toy_deleted", toy_id=str(toy["_id"]), units=removed, user_sub=actor_id(actor))


def toy_categories(store: ToyLendingStore) -> list[str]:
    return sorted(str(c) for c in store.toys.distinct("category") if c)


def search_toys(store: ToyLendingStore, term: str | None) -> list[dict[str, Any]]:
    query: dict[str, Any] = {"availableUnits": {"$gt": 0}}
    t = (term or "").strip()
    if t:
        pattern = re.escape(t)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"category": {"$regex": pattern, "$options": "i"}},
        ]
    return store.toys.find(
        query,
        projection={"name": 1, "category": 1, "availableUnits": 1, "image": 1},
        sort=[("name", 1), ("_id", 1)],
        limit=SEARCH_LIMIT,
    )


# --- units ---


def list_units(store: ToyLendingStore, toy_id: Any) -> list[dict[str, Any]]:
    toy = load_toy(store, toy_id)
    return store.units.find({"toyId": toy["_id"]}, sort=[("unitNumber", 1)])


def available_units(store: ToyLendingStore, toy_id: Any) -> list[dict[str, Any]]:
    toy = load_toy(store, toy_id)
    return store.units.find(
        {"toyId": toy["_id"], "isAvailable": True},
        projection={"unitNumber": 1, "condition": 1},
        sort=[("unitNumber", 1)],
    )


def get_unit(store: ToyLendingStore, unit_id: Any) -> dict[str, Any]:
    unit = load_unit(store, unit_id, message="Unit not found")
    out = to_public(unit)
    toy = store.toys.get(unit["toyId"], projection={"name": 1, "category": 1})
    out["toy"] = to_public(toy) if toy else None
    return out


def add_unit(store: ToyLendingStore, toy_id: Any, data: dict[str, Any]) -> dict[str, Any]:
    payload = validate_payload(ToyUnitIn, data)
    toy = load_toy(store, toy_id)
    if store.units.exists({"toyId": toy["_id"], "unitNumber": payload.unitNumber}):
        raise Conflict(message="Unit number already exists")

    doc = to_document(payload)
    doc.update({"toyId": toy["_id"], "isAvailable": True})
    try:
        unit = store.units.insert_one(doc)
    except StoreConflict:
        raise Conflict(message="Unit number already exists")
    recount_units(store, toy["_id"])
    log.info("toy_unit_added", toy_id=str(toy["_id"]), unit_number=payload.unitNumber)
    return unit


def update_unit(store: ToyLendingStore, unit_id: Any, data: dict[str, Any]) -> dict[str, Any]:
    payload = validate_payload(ToyUnitUpdateIn, data)
    unit = load_unit(store, unit_id)

    if not unit.get("isAvailable", True) and payload.condition is not None:
        raise BusinessRuleViolation(message="Cannot update condition of a borrowed toy unit")

    number = payload.unitNumber
    if number is not None and number != unit.get("unitNumber"):
        if store.units.exists({"toyId": unit["toyId"], "unitNumber": number, "_id": {"$ne": unit["_id"]}}):
            raise Conflict(message=f"Unit number {number} already exists for this toy")

    fields = to_document(payload)
    if not fields:
        return unit
    try:
        updated = store.units.set_fields(unit["_id"], fields)
    except StoreConflict:
        raise Conflict(message=f"Unit number {number} already exists for this toy")
    return updated or unit


def delete_unit(store: ToyLendingStore, unit_id: Any) -> None:
    unit = load_unit(store, unit_id)
    if not unit.get("isAvailable", True):
        raise BusinessRuleViolation(message="Cannot delete a borrowed toy unit")
    store.units.delete_by_id(unit["_id"])
    recount_units(store, unit["toyId"])
    log.info("toy_unit_deleted", toy_id=str(unit["toyId"]), unit_number=unit.get("unitNumber"))
