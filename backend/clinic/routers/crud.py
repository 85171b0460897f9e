"""
Shared route wiring for resources that expose plain CRUD.

Register resource-specific paths first: the generic `/{item_id}` routes
added here would otherwise shadow them.
"""

from __future__ import annotations

from typing import Any, Iterable

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import ORJSONResponse

from ..auth.roles import ROLE_ADMIN, require_roles
from ..envelope import ok
from ..query.builder import ListResult, query_params
from ..services.resource import ResourceService

ALL_ROUTES = ("list", "get", "create", "update", "delete")


def list_response(result: ListResult, present) -> ORJSONResponse:
    return ok(
        [present(d) for d in result.items],
        count=len(result.items),
        total=result.total,
        pagination=result.pagination,
    )


def _deps(roles: Iterable[str] | None) -> list[Any]:
    roles = tuple(roles or ())
    return [Depends(require_roles(*roles))] if roles else []


def add_crud_routes(
    router: APIRouter,
    service: ResourceService,
    *,
    read_roles: Iterable[str] | None = None,
    write_roles: Iterable[str] = (ROLE_ADMIN,),
    delete_roles: Iterable[str] | None = None,
    routes: Iterable[str] = ALL_ROUTES,
    path: str = "",
) -> None:
    """Attach list/get/create/update/delete for `service` under `path`."""
    enabled = set(routes)
    write = tuple(write_roles)
    remove = tuple(delete_roles) if delete_roles is not None else write
    item_path = f"{path}/{{item_id}}"

    if "list" in enabled:

        @router.get(path or "", dependencies=_deps(read_roles))
        def list_items(request: Request):
            return list_response(service.list(query_params(request)), service.present)

    if "get" in enabled:

        @router.get(item_path, dependencies=_deps(read_roles))
        def get_item(item_id: str):
            return ok(service.present(service.get(item_id)))

    if "create" in enabled:

        @router.post(path or "", status_code=201)
        def create_item(body: dict[str, Any] = Body(...), user: Any = Depends(require_roles(*write))):
            return ok(service.present(service.create(body, actor=user)), status_code=201)

    if "update" in enabled:

        @router.put(item_path)
        def update_item(
            item_id: str,
            body: dict[str, Any] = Body(...),
            user: Any = Depends(require_roles(*write)),
        ):
            return ok(service.present(service.update(item_id, body, actor=user)))

    if "delete" in enabled:

        @router.delete(item_path)
        def delete_item(item_id: str, user: Any = Depends(require_roles(*remove))):
            kept = service.delete(item_id, actor=user)
            return ok(service.present(kept) if kept is not None else {})
