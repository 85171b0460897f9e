"""Routes for clinic services, recipes, detox plans and workshops."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..auth.roles import ROLE_ADMIN, authenticated, require_roles
from ..envelope import ok
from ..services.offerings import clinic_services, detox_plans, recipes
from ..services.workshops import workshops
from .crud import add_crud_routes

services_router = APIRouter(tags=["services"])
recipes_router = APIRouter(tags=["recipes"])
detox_router = APIRouter(tags=["detox-plans"])
workshops_router = APIRouter(tags=["workshops"])


@services_router.get("/category/{category}")
def services_by_category(category: str):
    items = [clinic_services.present(s) for s in clinic_services.by_category(category)]
    return ok(items, count=len(items))


add_crud_routes(services_router, clinic_services)


@recipes_router.post("/{item_id}/download")
def record_recipe_download(item_id: str):
    updated = recipes.record_download(item_id)
    return ok({"id": str(updated["_id"]), "downloads": int(updated.get("downloads") or 0)})


add_crud_routes(recipes_router, recipes)

add_crud_routes(detox_router, detox_plans)


@workshops_router.post("/{item_id}/register")
def register_for_workshop(item_id: str, user: Any = Depends(authenticated)):
    result = workshops.register(item_id, user)
    return ok(result, message="Successfully registered for the workshop.")


@workshops_router.get("/admin/{item_id}", dependencies=[Depends(require_roles(ROLE_ADMIN))])
def get_workshop_admin(item_id: str):
    return ok(workshops.present(workshops.get(item_id)))


add_crud_routes(workshops_router, workshops, read_roles=(ROLE_ADMIN,), routes=("list",), path="/all")
add_crud_routes(workshops_router, workshops)
