from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ..auth.roles import ROLE_ADMIN, ROLE_STAFF, require_roles
from ..db.mongo.ids import to_public
from ..envelope import ok
from ..modules.toy_lending import borrowings, toys
from ..modules.toy_lending.status import present_borrowing, present_borrowings
from ..modules.toy_lending.store import ToyLendingStore, lending_store
from ..query.builder import query_params
from .crud import list_response

staff = require_roles(ROLE_ADMIN, ROLE_STAFF)
admin_only = require_roles(ROLE_ADMIN)

router = APIRouter(tags=["toys"], dependencies=[Depends(staff)])


@router.get("")
def list_toys(request: Request, store: ToyLendingStore = Depends(lending_store)):
    return list_response(toys.list_toys(store, query_params(request)), to_public)


@router.post("", status_code=201)
def create_toy(
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    return ok(toys.toy_with_units(store, toys.create_toy(store, body, actor=user)["_id"]), status_code=201)


@router.get("/categories")
def toy_categories(store: ToyLendingStore = Depends(lending_store)):
    cats = toys.toy_categories(store)
    return ok(cats, count=len(cats))


@router.get("/search")
def search_toys(q: str | None = None, store: ToyLendingStore = Depends(lending_store)):
    found = to_public(toys.search_toys(store, q))
    return ok(found, count=len(found))


# --- borrowings ---


@router.get("/borrowings")
def active_borrowings(request: Request, store: ToyLendingStore = Depends(lending_store)):
    result = borrowings.list_active(store, query_params(request))
    items = present_borrowings(store, result.items)
    return ok(items, count=len(items), total=result.total, pagination=result.pagination)


@router.post("/borrowings", status_code=201)
def issue_toy(
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    issued = borrowings.issue_toy(store, body, actor=user)
    return ok(present_borrowing(store, issued), status_code=201, message="Toy issued successfully")


@router.get("/borrowings/overdue")
def overdue_borrowings(store: ToyLendingStore = Depends(lending_store)):
    items = present_borrowings(store, borrowings.list_overdue(store))
    return ok(items, count=len(items))


@router.put("/borrowings/overdue/update")
def refresh_overdue(store: ToyLendingStore = Depends(lending_store)):
    modified = borrowings.refresh_overdue(store)
    return ok({"modifiedCount": modified}, message=f"Updated {modified} borrowings to Overdue")


@router.post("/borrowings/bulk-return")
def bulk_return(
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    result = borrowings.bulk_return(store, body, actor=user)
    returned = present_borrowings(store, result.pop("data"))
    # Partial success is still a 200; only a batch with no returns is a 400.
    return ok(returned, status_code=200 if result["success"] else 400, **result)


@router.get("/borrowings/{borrowing_id}")
def get_borrowing(borrowing_id: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(present_borrowing(store, borrowings.load_borrowing(store, borrowing_id)))


@router.put("/borrowings/{borrowing_id}/return")
def return_toy(
    borrowing_id: str,
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    returned = borrowings.return_toy(store, borrowing_id, body, actor=user)
    return ok(present_borrowing(store, returned), message="Toy returned successfully")


@router.put("/borrowings/{borrowing_id}/status")
def update_borrowing_status(
    borrowing_id: str,
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    updated = borrowings.update_status(store, borrowing_id, body, actor=user)
    return ok(present_borrowing(store, updated))


@router.get("/borrowers/{email}/history")
def borrower_history(email: str, store: ToyLendingStore = Depends(lending_store)):
    items = present_borrowings(store, borrowings.email_history(store, email))
    return ok(items, count=len(items))


# --- units ---


@router.get("/units/{unit_id}")
def get_unit(unit_id: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(toys.get_unit(store, unit_id))


@router.put("/units/{unit_id}")
def update_unit(unit_id: str, body: dict[str, Any] = Body(...), store: ToyLendingStore = Depends(lending_store)):
    return ok(to_public(toys.update_unit(store, unit_id, body)))


@router.delete("/units/{unit_id}", dependencies=[Depends(admin_only)])
def delete_unit(unit_id: str, store: ToyLendingStore = Depends(lending_store)):
    toys.delete_unit(store, unit_id)
    return ok({})


@router.get("/{toy_id}/units")
def list_units(toy_id: str, store: ToyLendingStore = Depends(lending_store)):
    units = to_public(toys.list_units(store, toy_id))
    return ok(units, count=len(units))


@router.post("/{toy_id}/units", status_code=201)
def add_unit(toy_id: str, body: dict[str, Any] = Body(...), store: ToyLendingStore = Depends(lending_store)):
    return ok(to_public(toys.add_unit(store, toy_id, body)), status_code=201)


@router.get("/{toy_id}/available-units")
def available_units(toy_id: str, store: ToyLendingStore = Depends(lending_store)):
    units = to_public(toys.available_units(store, toy_id))
    return ok(units, count=len(units))


@router.get("/{toy_id}/borrowing-history")
def toy_borrowing_history(toy_id: str, store: ToyLendingStore = Depends(lending_store)):
    items = present_borrowings(store, borrowings.toy_history(store, toy_id))
    return ok(items, count=len(items))


# --- single toy ---


@router.get("/{toy_id}")
def get_toy(toy_id: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(toys.toy_with_units(store, toy_id))


@router.put("/{toy_id}")
def update_toy(
    toy_id: str,
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    return ok(to_public(toys.update_toy(store, toy_id, body, actor=user)))


@router.delete("/{toy_id}")
def delete_toy(toy_id: str, store: ToyLendingStore = Depends(lending_store), user: Any = Depends(admin_only)):
    toys.delete_toy(store, toy_id, actor=user)
    return ok({})
