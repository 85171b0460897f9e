from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ..auth.roles import ROLE_ADMIN, require_roles
from ..envelope import ok
from ..query.builder import query_params
from ..services.products import products
from .crud import add_crud_routes, list_response

router = APIRouter(tags=["products"])

admin_only = require_roles(ROLE_ADMIN)


@router.get("/featured")
def featured_products():
    items = products.with_categories(products.featured())
    return ok(items, count=len(items))


@router.get("/category/{category_id}")
def products_by_category(category_id: str, request: Request):
    return list_response(products.by_category(category_id, query_params(request)), products.present)


@router.get("/name/{name}")
def product_by_name(name: str):
    return ok(products.present(products.by_name(name)))


@router.post("/admin", status_code=201)
def create_product(body: dict[str, Any] = Body(...), user: Any = Depends(admin_only)):
    return ok(products.present(products.create(body, actor=user)), status_code=201)


@router.get("/admin/inventory", dependencies=[Depends(admin_only)])
def low_stock_products(threshold: str | None = None):
    rows = products.low_stock(threshold)
    return ok(rows, count=len(rows))


@router.get("/admin/all-inventory", dependencies=[Depends(admin_only)])
def all_products_inventory(threshold: str | None = None):
    rows = products.inventory_report(threshold)
    return ok(rows, count=len(rows))


@router.put("/admin/{item_id}/stock", dependencies=[Depends(admin_only)])
def update_product_stock(item_id: str, body: dict[str, Any] = Body(...)):
    return ok(products.update_stock(item_id, body))


# Writes live under /admin; public reads use the bare paths.
add_crud_routes(router, products, routes=("update", "delete"), path="/admin")
add_crud_routes(router, products, routes=("list", "get"))
