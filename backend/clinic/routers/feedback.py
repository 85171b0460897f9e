from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..auth.roles import ROLE_ADMIN, authenticated, require_roles
from ..envelope import ok
from ..services.feedback import feedback
from .crud import add_crud_routes

router = APIRouter(tags=["feedback"])

admin_only = [Depends(require_roles(ROLE_ADMIN))]


@router.get("/item/{item_type}/{item_id}")
def item_feedback(item_type: str, item_id: str):
    items = [feedback.present(f) for f in feedback.for_item(item_type, item_id)]
    return ok(items, count=len(items))


@router.get("/me")
def my_feedback(user: Any = Depends(authenticated)):
    items = [feedback.present(f) for f in feedback.mine(user)]
    return ok(items, count=len(items))


@router.post("", status_code=201)
def create_feedback(body: dict[str, Any] = Body(...), user: Any = Depends(authenticated)):
    return ok(feedback.present(feedback.create(body, actor=user)), status_code=201)


@router.put("/{item_id}/publish", dependencies=admin_only)
def toggle_feedback_publish(item_id: str):
    return ok(feedback.present(feedback.toggle_publish(item_id)))


# Owners edit and delete their own feedback; the service enforces ownership.
add_crud_routes(router, feedback, read_roles=(ROLE_ADMIN,), write_roles=(), routes=("list", "get", "update", "delete"))
