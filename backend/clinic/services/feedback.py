from __future__ import annotations

from typing import Any

from ..db.mongo.collection import get_collection
from ..db.mongo.ids import parse_object_id
from ..errors import BusinessRuleViolation, Conflict, Forbidden, NotFound
from ..query.builder import QuerySpec
from ..schemas.learning import FeedbackIn, FeedbackUpdateIn
from .resource import ResourceService, actor_id

ITEM_COLLECTIONS = {"course": "courses", "webinar": "webinars"}


def rating_summary(item_id: Any) -> dict[str, Any]:
    """Average rating and count for a course or webinar, from Feedback."""
    rows = get_collection("feedbacks").aggregate(
        [
            {"$match": {"itemId": item_id}},
            {"$group": {"_id": None, "average": {"$avg": "$rating"}, "count": {"$sum": 1}}},
        ]
    )
    if not rows:
        return {"averageRating": 0, "ratingsCount": 0}
    row = rows[0]
    return {"averageRating": round(float(row.get("average") or 0), 2), "ratingsCount": int(row.get("count") or 0)}


def _item_label(item_type: str) -> str:
    return item_type[:1].upper() + item_type[1:]


class FeedbackService(ResourceService):
    collection_name = "feedbacks"
    model = FeedbackIn
    update_model = FeedbackUpdateIn
    not_found_message = "Feedback not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="-createdAt",
        search_fields=("comment", "username"),
        field_types={"rating": "int", "isPublished": "bool", "itemId": "objectid"},
    )

    def _require_item(self, item_type: str, item_id: Any) -> dict[str, Any]:
        name = ITEM_COLLECTIONS.get(item_type)
        if name is None:
            raise BusinessRuleViolation(message="Invalid item type")
        oid = parse_object_id(item_id)
        item = get_collection(name).get(oid) if oid is not None else None
        if not item:
            raise NotFound(message=f"{_item_label(item_type)} not found")
        return item

    def _require_owner(self, doc: dict[str, Any], actor: Any, verb: str) -> None:
        if getattr(actor, "is_admin", False):
            return
        if doc.get("user") != actor_id(actor):
            raise Forbidden(message=f"User {actor_id(actor)} is not authorized to {verb} this feedback")

    def before_create(self, doc, *, actor=None):
        self._require_item(doc["itemType"], doc["itemId"])
        doc["user"] = actor_id(actor)
        doc["username"] = getattr(actor, "username", None) or getattr(actor, "email", None) or ""
        doc["isPublished"] = True
        if self.coll.exists({"user": doc["user"], "itemId": doc["itemId"]}):
            raise Conflict(message=f"You have already submitted feedback for this {doc['itemType']}")
        return doc

    def update(self, item_id, patch, *, actor=None):
        self._require_owner(self.load(item_id), actor, "update")
        return super().update(item_id, patch, actor=actor)

    def before_delete(self, current, *, actor=None):
        self._require_owner(current, actor, "delete")
        return None

    def mine(self, actor: Any) -> list[dict[str, Any]]:
        return self.coll.find({"user": actor_id(actor)}, sort=[("createdAt", -1), ("_id", 1)])

    def for_item(self, item_type: str, item_id: Any) -> list[dict[str, Any]]:
        item = self._require_item(item_type, item_id)
        return self.coll.find(
            {"itemType": item_type, "itemId": item["_id"], "isPublished": True},
            sort=[("createdAt", -1), ("_id", 1)],
        )

    def toggle_publish(self, item_id: Any) -> dict[str, Any]:
        current = self.load(item_id)
        published = not bool(current.get("isPublished", True))
        updated = self.coll.set_fields(current["_id"], {"isPublished": published})
        self.log.info("feedback_publish_toggled", id=str(current["_id"]), published=published)
        return updated or current


feedback = FeedbackService()
