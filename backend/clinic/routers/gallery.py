from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..auth.roles import ROLE_ADMIN, require_roles
from ..envelope import ok
from ..errors import UpstreamError
from ..infrastructure.storage import StorageCollaborator, get_storage
from ..observability.logging import get_logger
from ..services.gallery import gallery
from .crud import add_crud_routes

router = APIRouter(tags=["gallery"])

admin_only = require_roles(ROLE_ADMIN)
log = get_logger("gallery_router")


@router.get("/stats/summary", dependencies=[Depends(admin_only)])
def gallery_stats():
    return ok(gallery.stats())


@router.post("/upload", status_code=201)
def upload_gallery_image(
    file: UploadFile = File(...),
    title: str = Form(...),
    category: str = Form(...),
    description: str | None = Form(default=None),
    featured: bool = Form(default=False),
    order: int = Form(default=0),
    storage: StorageCollaborator = Depends(get_storage),
    user: Any = Depends(admin_only),
):
    stored = gallery.upload(
        storage,
        file.file.read(),
        file_name=file.filename or "",
        content_type=file.content_type,
    )
    data = {
        "title": title,
        "category": category,
        "description": description,
        "featured": featured,
        "order": order,
        "imageUrl": stored["url"],
        "publicId": stored["publicId"],
    }
    try:
        created = gallery.create(data, actor=user)
    except Exception:
        try:
            storage.delete_file(stored["publicId"])
        except UpstreamError as cleanup:
            # The record error is what the caller needs to see.
            log.warning("gallery_upload_rollback_failed", public_id=stored["publicId"], error=cleanup.message)
        raise
    return ok(gallery.present(created), status_code=201)


@router.delete("/{item_id}")
def delete_gallery_image(
    item_id: str,
    storage: StorageCollaborator = Depends(get_storage),
    user: Any = Depends(admin_only),
):
    gallery.remove(item_id, storage, actor=user)
    return ok({})


add_crud_routes(router, gallery, routes=("list", "get", "create", "update"))
