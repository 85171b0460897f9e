from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..auth.roles import ROLE_ADMIN, require_roles
from ..envelope import ok
from ..services.courses import courses
from ..services.feedback import feedback, rating_summary
from .crud import add_crud_routes

router = APIRouter(tags=["courses"])

admin_only = [Depends(require_roles(ROLE_ADMIN))]


@router.get("/{item_id}")
def get_course(item_id: str):
    return ok(courses.detail(courses.get(item_id)))


@router.get("/{item_id}/ratings")
def course_ratings(item_id: str):
    course = courses.get(item_id)
    reviews = feedback.for_item("course", course["_id"])
    return ok({**rating_summary(course["_id"]), "feedback": [feedback.present(f) for f in reviews]})


@router.post("/{item_id}/videos", dependencies=admin_only)
def add_course_video(item_id: str, body: dict[str, Any] = Body(...)):
    return ok(courses.present(courses.add_video(item_id, body)), status_code=201)


@router.delete("/{item_id}/videos/{video_id}", dependencies=admin_only)
def delete_course_video(item_id: str, video_id: str):
    return ok(courses.present(courses.delete_video(item_id, video_id)))


@router.put("/{item_id}/status", dependencies=admin_only)
def update_course_status(item_id: str, body: dict[str, Any] = Body(...)):
    return ok(courses.present(courses.set_status(item_id, body)))


add_crud_routes(router, courses, routes=("list", "create", "update", "delete"))
