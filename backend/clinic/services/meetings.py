from __future__ import annotations

from typing import Any

from ..db.mongo.errors import StoreConflict
from ..errors import Conflict
from ..query.builder import QuerySpec
from ..schemas.content import MeetingIn
from .resource import ResourceService

DUPLICATE_LINK = "Meeting link already exists"


class MeetingService(ResourceService):
    collection_name = "meetings"
    model = MeetingIn
    not_found_message = "Meeting not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="date",
        search_fields=("hostDoctor", "meetLink"),
        field_types={"date": "date"},
    )

    def _check_link(self, link: str, *, self_id: Any = None) -> None:
        clash: dict[str, Any] = {"meetLink": link}
        if self_id is not None:
            clash["_id"] = {"$ne": self_id}
        if self.coll.exists(clash):
            raise Conflict(message=DUPLICATE_LINK)

    def before_create(self, doc, *, actor=None):
        self._check_link(doc["meetLink"])
        return doc

    def before_update(self, current, fields, *, actor=None):
        self._check_link(fields["meetLink"], self_id=current["_id"])
        return fields

    def create(self, data, *, actor=None):
        try:
            return super().create(data, actor=actor)
        except StoreConflict:
            raise Conflict(message=DUPLICATE_LINK)

    def update(self, item_id, patch, *, actor=None):
        try:
            return super().update(item_id, patch, actor=actor)
        except StoreConflict:
            raise Conflict(message=DUPLICATE_LINK)


meetings = MeetingService()
