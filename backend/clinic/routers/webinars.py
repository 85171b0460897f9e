from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..auth.roles import ROLE_ADMIN, authenticated, require_roles
from ..db.mongo.ids import to_public
from ..envelope import ok
from ..services.resource import actor_id
from ..services.webinars import webinars
from .crud import add_crud_routes

router = APIRouter(tags=["webinars"])

admin_only = [Depends(require_roles(ROLE_ADMIN))]


@router.get("/user-webinars")
def user_webinars(user: Any = Depends(authenticated)):
    items = [webinars.present(w) for w in webinars.for_user(user)]
    return ok(items, count=len(items))


@router.get("/user-webinars/{item_id}")
def user_webinar(item_id: str, user: Any = Depends(authenticated)):
    webinar = webinars.get(item_id)
    if not any(r.get("user") == actor_id(user) for r in webinar.get("registeredUsers") or []):
        raise webinars.not_found()
    return ok(webinars.detail(webinar))


@router.get("/upcoming")
def upcoming_webinars():
    items = [webinars.present(w) for w in webinars.upcoming()]
    return ok(items, count=len(items))


@router.get("/{item_id}")
def get_webinar(item_id: str):
    return ok(webinars.detail(webinars.get(item_id)))


@router.post("/{item_id}/register")
def register_for_webinar(item_id: str, user: Any = Depends(authenticated)):
    updated = webinars.register(item_id, user)
    return ok(webinars.present(updated), message="Successfully registered for webinar")


@router.delete("/{item_id}/register")
def cancel_webinar_registration(item_id: str, user: Any = Depends(authenticated)):
    webinars.cancel(item_id, user)
    return ok({}, message="Registration cancelled")


@router.put("/{item_id}/status", dependencies=admin_only)
def update_webinar_status(item_id: str, body: dict[str, Any] = Body(...)):
    return ok(webinars.present(webinars.set_status(item_id, body)))


@router.get("/{item_id}/registrations", dependencies=admin_only)
def webinar_registrations(item_id: str):
    rows = to_public(webinars.registrations(item_id))
    return ok(rows, count=len(rows))


add_crud_routes(router, webinars, routes=("list", "create", "update", "delete"))
