from __future__ import annotations

from typing import Any

from ..errors import AppError
from ..infrastructure.storage import StorageCollaborator
from ..query.builder import QuerySpec
from ..schemas.content import GalleryIn
from .resource import ResourceService

GALLERY_FOLDER = "gallery"


class GalleryService(ResourceService):
    collection_name = "galleries"
    model = GalleryIn
    not_found_message = "Gallery image not found"
    owner_field = "uploadedBy"
    query_spec = QuerySpec(
        default_sort="order,-createdAt",
        search_fields=("title", "description"),
        field_types={"featured": "bool", "order": "int"},
    )

    def upload(
        self,
        storage: StorageCollaborator,
        data: bytes,
        *,
        file_name: str = "",
        content_type: str | None = None,
    ) -> dict[str, str]:
        stored = storage.upload_file(data, GALLERY_FOLDER, file_name=file_name, content_type=content_type)
        self.log.info("gallery_media_uploaded", public_id=stored.get("publicId"))
        return stored

    def remove(self, item_id: Any, storage: StorageCollaborator, *, actor: Any = None) -> None:
        current = self.load(item_id)
        public_id = current.get("publicId")
        if public_id:
            # Media cleanup is best effort.
            try:
                storage.delete_file(public_id)
            except AppError as e:
                self.log.warning("gallery_media_delete_failed", public_id=public_id, error=str(e))
        self.delete(item_id, actor=actor)

    def stats(self) -> dict[str, Any]:
        by_category = self.coll.aggregate(
            [
                {"$group": {"_id": "$category", "count": {"$sum": 1}}},
                {"$sort": {"_id": 1}},
            ]
        )
        return {
            "totalCount": self.coll.count({}),
            "featuredCount": self.coll.count({"featured": True}),
            "categoryStats": by_category,
        }


gallery = GalleryService()
