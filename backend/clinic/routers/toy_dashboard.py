from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ..auth.roles import ROLE_ADMIN, ROLE_STAFF, require_roles
from ..db.mongo.ids import to_public
from ..envelope import ok
from ..infrastructure.email import NotificationCollaborator, get_notifier
from ..modules.toy_lending import borrowings, dashboard, toys
from ..modules.toy_lending.status import present_borrowings
from ..modules.toy_lending.store import ToyLendingStore, lending_store
from ..query.builder import query_params

staff = require_roles(ROLE_ADMIN, ROLE_STAFF)

router = APIRouter(tags=["toy-dashboard"], dependencies=[Depends(staff)])


@router.get("/dashboard/stats")
def dashboard_stats(store: ToyLendingStore = Depends(lending_store)):
    return ok(dashboard.dashboard_stats(store))


@router.get("/dashboard/borrowed-toys")
def borrowed_toys(search: str | None = None, store: ToyLendingStore = Depends(lending_store)):
    items = dashboard.borrowed_toys(store, search)
    return ok(items, count=len(items))


@router.post("/dashboard/send-reminder")
def send_reminder(
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    notifier: NotificationCollaborator = Depends(get_notifier),
):
    result = dashboard.send_reminder(store, notifier, body)
    return ok(result["borrowing"], message=result["message"])


@router.put("/dashboard/process-return/{borrowing_id}")
def process_return(
    borrowing_id: str,
    body: dict[str, Any] | None = Body(default=None),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    returned = dashboard.process_return(store, borrowing_id, body or {}, actor=user)
    return ok(returned, message="Toy returned successfully")


@router.get("/toys/{toy_id}/available-units")
def available_units(toy_id: str, store: ToyLendingStore = Depends(lending_store)):
    units = to_public(toys.available_units(store, toy_id))
    return ok(units, count=len(units))


@router.get("/toys/{toy_id}/details")
def toy_details(toy_id: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(toys.toy_details(store, toy_id))


@router.get("/borrowers")
def borrower_overview(search: str | None = None, store: ToyLendingStore = Depends(lending_store)):
    rows = dashboard.borrower_overview(store, search)
    return ok(rows, count=len(rows))


@router.get("/borrowers/{email}")
def borrower_by_email(email: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(dashboard.borrower_by_email(store, email))


@router.post("/borrowers/{email}/send-reminder")
def send_reminder_to_borrower(
    email: str,
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    notifier: NotificationCollaborator = Depends(get_notifier),
):
    result = dashboard.send_reminder(store, notifier, body, email=email)
    return ok(result["borrowing"], message=result["message"])


@router.get("/borrowings/{borrowing_id}/borrower")
def borrower_by_borrowing(borrowing_id: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(dashboard.borrower_by_borrowing(store, borrowing_id))


@router.get("/process-return/smart-search")
def smart_search(searchTerm: str | None = None, store: ToyLendingStore = Depends(lending_store)):
    return ok(dashboard.smart_search(store, searchTerm))


@router.post("/process-return/process-multiple")
def process_multiple_returns(
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    result = borrowings.bulk_return(store, body, actor=user)
    returned = present_borrowings(store, result.pop("data"))
    return ok(returned, status_code=200 if result["success"] else 400, **result)


@router.get("/process-return/active-borrowings")
def active_borrowings(request: Request, store: ToyLendingStore = Depends(lending_store)):
    result = borrowings.list_active(store, query_params(request))
    items = present_borrowings(store, result.items)
    return ok(items, count=len(items), total=result.total, pagination=result.pagination)
