from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ..auth.roles import ROLE_ADMIN, ROLE_STAFF, require_roles
from ..db.mongo.ids import to_public
from ..envelope import ok
from ..modules.toy_lending import borrowers
from ..modules.toy_lending.store import ToyLendingStore, lending_store
from ..query.builder import query_params

staff = require_roles(ROLE_ADMIN, ROLE_STAFF)

router = APIRouter(tags=["borrowers"], dependencies=[Depends(staff)])


@router.get("")
def list_borrowers(request: Request, store: ToyLendingStore = Depends(lending_store)):
    page = borrowers.list_borrowers(store, query_params(request))
    result = page["result"]
    return ok(page["items"], count=len(page["items"]), total=result.total, pagination=result.pagination)


@router.post("", status_code=201)
def create_borrower(
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    return ok(to_public(borrowers.create_borrower(store, body, actor=user)), status_code=201)


@router.get("/stats")
def borrower_stats(store: ToyLendingStore = Depends(lending_store)):
    return ok(borrowers.borrower_stats(store))


@router.get("/{borrower_id}")
def get_borrower(borrower_id: str, store: ToyLendingStore = Depends(lending_store)):
    return ok(borrowers.get_borrower(store, borrower_id))


@router.put("/{borrower_id}")
def update_borrower(
    borrower_id: str,
    body: dict[str, Any] = Body(...),
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    return ok(to_public(borrowers.update_borrower(store, borrower_id, body, actor=user)))


@router.delete("/{borrower_id}")
def delete_borrower(
    borrower_id: str,
    store: ToyLendingStore = Depends(lending_store),
    user: Any = Depends(staff),
):
    borrowers.delete_borrower(store, borrower_id, actor=user)
    return ok({})
