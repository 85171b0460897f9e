"""Staff-facing back office: inventory, meetings and outbound email."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ..auth.roles import ROLE_ADMIN, authenticated, require_roles
from ..envelope import ok
from ..infrastructure.email import NotificationCollaborator, get_notifier
from ..query.builder import query_params
from ..services.emails import emails
from ..services.inventory import inventory
from ..services.meetings import meetings
from .crud import add_crud_routes, list_response

admin_only = require_roles(ROLE_ADMIN)

inventory_router = APIRouter(tags=["inventory"], dependencies=[Depends(admin_only)])
meetings_router = APIRouter(tags=["meetings"], dependencies=[Depends(admin_only)])
emails_router = APIRouter(tags=["emails"])


@inventory_router.get("/low-stock")
def low_stock_inventory():
    items = [inventory.present(d) for d in inventory.low_stock()]
    return ok(items, count=len(items))


@inventory_router.get("/product/{product_id}")
def product_inventory(product_id: str):
    return ok(inventory.present(inventory.for_product(product_id)))


@inventory_router.put("/stock")
def update_inventory_stock(body: dict[str, Any] = Body(...), user: Any = Depends(admin_only)):
    return ok(inventory.present(inventory.update_stock(body, actor=user)))


add_crud_routes(inventory_router, inventory)

add_crud_routes(meetings_router, meetings)


@emails_router.post("/send", status_code=201)
def send_emails(
    body: dict[str, Any] = Body(...),
    notifier: NotificationCollaborator = Depends(get_notifier),
    user: Any = Depends(admin_only),
):
    result = emails.send(body, notifier, actor=user)
    return ok(result, status_code=201, message=f"Sent {result['sentCount']} email(s)")


@emails_router.get("/recent")
def recent_emails(user: Any = Depends(authenticated)):
    items = [emails.present(e) for e in emails.recent(user)]
    return ok(items, count=len(items))


@emails_router.get("/all", dependencies=[Depends(admin_only)])
def all_emails(request: Request):
    return list_response(emails.list(query_params(request)), emails.present)


@emails_router.get("")
def my_emails(user: Any = Depends(authenticated)):
    items = [emails.present(e) for e in emails.for_user(user)]
    return ok(items, count=len(items))


@emails_router.get("/{item_id}")
def get_email(item_id: str, user: Any = Depends(authenticated)):
    return ok(emails.present(emails.get_for(item_id, user)))
