from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..auth.roles import ROLE_ADMIN, require_roles
from ..envelope import ok
from ..services.categories import categories
from .crud import add_crud_routes

router = APIRouter(tags=["categories"])


@router.get("/tree")
def category_tree():
    tree = categories.tree()
    return ok(tree, count=len(tree))


@router.get("/name/{name}")
def category_by_name(name: str):
    return ok(categories.with_subcategories(categories.by_name(name)))


@router.put("/{item_id}/products", dependencies=[Depends(require_roles(ROLE_ADMIN))])
def assign_products(item_id: str, body: dict[str, Any] = Body(...)):
    return ok(categories.present(categories.assign_products(item_id, body)))


@router.get("/{item_id}")
def get_category(item_id: str):
    return ok(categories.with_subcategories(categories.get(item_id)))


add_crud_routes(router, categories, routes=("list", "create", "update", "delete"))
