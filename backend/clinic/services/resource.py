"""
Generic CRUD service over one collection.

Entity services subclass `ResourceService` and override the hooks
(`before_create`, `before_update`, `before_delete`, `present`) to add
their domain rules. Validation always runs before any store mutation, and
updates re-validate the merged document against the full rule set.
"""

from __future__ import annotations

from typing import Any, Mapping

from bson import ObjectId

from ..db.mongo.collection import MongoCollection, get_collection
from ..db.mongo.ids import parse_object_id, to_public
from ..errors import NotFound
from ..observability.logging import get_logger
from ..query.builder import ListResult, QuerySpec, list_resource
from ..schemas.common import RequestModel, to_document, validate_payload


def actor_id(actor: Any) -> str | None:
    sub = getattr(actor, "sub", None) if actor is not None else None
    return str(sub) if sub else None


class ResourceService:
    collection_name: str = ""
    model: type[RequestModel] = RequestModel
    # Rule set for updates when it differs from the create rules.
    update_model: type[RequestModel] | None = None
    query_spec: QuerySpec = QuerySpec()
    not_found_message: str = "Resource not found"
    # Field stamped with the acting principal on create.
    owner_field: str | None = "createdBy"

    def __init__(self, collection: MongoCollection | None = None):
        self._collection = collection
        self.log = get_logger(f"service.{self.collection_name or type(self).__name__}")

    @property
    def coll(self) -> MongoCollection:
        return self._collection or get_collection(self.collection_name)

    # --- reads ---

    def list(
        self,
        params: Mapping[str, Any],
        *,
        base_filter: dict[str, Any] | None = None,
    ) -> ListResult:
        return list_resource(self.coll, params, self.query_spec, base_filter=base_filter)

    def not_found(self) -> NotFound:
        return NotFound(message=self.not_found_message)

    def load(self, item_id: Any) -> dict[str, Any]:
        """Fetch by id; malformed and unknown ids are both a 404."""
        oid = parse_object_id(item_id)
        if oid is None:
            raise self.not_found()
        doc = self.coll.get(oid)
        if not doc:
            raise self.not_found()
        return doc

    def get(self, item_id: Any) -> dict[str, Any]:
        return self.load(item_id)

    # --- writes ---

    def create(self, data: Mapping[str, Any], *, actor: Any = None) -> dict[str, Any]:
        payload = validate_payload(self.model, dict(data))
        doc = to_document(payload)
        if self.owner_field and actor_id(actor):
            doc[self.owner_field] = actor_id(actor)
        doc = self.before_create(doc, actor=actor)
        created = self.coll.insert_one(doc)
        self.log.info("resource_created", id=str(created["_id"]), user_sub=actor_id(actor))
        return created

    def update(self, item_id: Any, patch: Mapping[str, Any], *, actor: Any = None) -> dict[str, Any]:
        current = self.load(item_id)
        merged = {**current, **dict(patch)}
        model = self.update_model or self.model
        payload = validate_payload(model, merged)
        fields = to_document(payload)

        # Explicit nulls clear optional fields.
        unset = [
            k
            for k, v in patch.items()
            if v is None and k in model.model_fields and k not in fields
        ]
        fields = self.before_update(current, fields, actor=actor)

        update: dict[str, Any] = {"$set": fields}
        if unset:
            update["$unset"] = {k: "" for k in unset}
        updated = self.coll.update_by_id(current["_id"], update)
        if updated is None:
            raise self.not_found()
        self.log.info("resource_updated", id=str(current["_id"]), user_sub=actor_id(actor))
        return updated

    def delete(self, item_id: Any, *, actor: Any = None) -> dict[str, Any] | None:
        """Delete and return None, or return a record kept instead of deleted."""
        current = self.load(item_id)
        kept = self.before_delete(current, actor=actor)
        if kept is not None:
            return kept
        self.coll.delete_by_id(current["_id"])
        self.after_delete(current)
        self.log.info("resource_deleted", id=str(current["_id"]), user_sub=actor_id(actor))
        return None

    # --- hooks ---

    def before_create(self, doc: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
        return doc

    def before_update(
        self,
        current: dict[str, Any],
        fields: dict[str, Any],
        *,
        actor: Any = None,
    ) -> dict[str, Any]:
        return fields

    def before_delete(self, current: dict[str, Any], *, actor: Any = None) -> dict[str, Any] | None:
        return None

    def after_delete(self, current: dict[str, Any]) -> None:
        return None

    def present(self, doc: dict[str, Any]) -> dict[str, Any]:
        return to_public(doc)

    # --- helpers ---

    def require_exists(self, coll: MongoCollection, oid: ObjectId, message: str) -> dict[str, Any]:
        doc = coll.get(oid)
        if not doc:
            raise NotFound(message=message)
        return doc
