from __future__ import annotations

from typing import Any

from ..db.mongo.ids import to_public, utcnow
from ..errors import BusinessRuleViolation
from ..query.builder import QuerySpec
from ..schemas.common import validate_payload
from ..schemas.learning import WebinarIn, WebinarStatusIn
from .feedback import rating_summary
from .resource import ResourceService, actor_id


class WebinarService(ResourceService):
    collection_name = "webinars"
    model = WebinarIn
    not_found_message = "Webinar not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="-date",
        search_fields=("title", "speaker", "description"),
        field_types={"date": "date", "duration": "int", "maxRegistrations": "int"},
    )

    def before_create(self, doc, *, actor=None):
        doc["registeredUsers"] = []
        return doc

    def present(self, doc):
        out = to_public(doc)
        registered = len(doc.get("registeredUsers") or [])
        out["registrationCount"] = registered
        out["availableSlots"] = max(0, int(doc.get("maxRegistrations") or 0) - registered)
        return out

    def detail(self, doc: dict[str, Any]) -> dict[str, Any]:
        out = self.present(doc)
        out.update(rating_summary(doc["_id"]))
        return out

    def upcoming(self) -> list[dict[str, Any]]:
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return self.coll.find(
            {"date": {"$gte": today}, "status": "scheduled"},
            sort=[("date", 1), ("_id", 1)],
        )

    def register(self, webinar_id: Any, actor: Any) -> dict[str, Any]:
        webinar = self.load(webinar_id)
        user = actor_id(actor)
        registered = webinar.get("registeredUsers") or []
        capacity = int(webinar.get("maxRegistrations") or 0)

        if len(registered) >= capacity:
            raise BusinessRuleViolation(message="Webinar registration is full")
        if any(r.get("user") == user for r in registered):
            raise BusinessRuleViolation(message="You are already registered for this webinar")

        # The last free slot index must still be empty when the push lands.
        entry = {"user": user, "registeredAt": utcnow(), "attended": False}
        updated = self.coll.find_one_and_update(
            {
                "_id": webinar["_id"],
                "registeredUsers.user": {"$ne": user},
                f"registeredUsers.{capacity - 1}": {"$exists": False},
            },
            {"$push": {"registeredUsers": entry}},
        )
        if updated is None:
            current = self.load(webinar["_id"]).get("registeredUsers") or []
            if any(r.get("user") == user for r in current):
                raise BusinessRuleViolation(message="You are already registered for this webinar")
            raise BusinessRuleViolation(message="Webinar registration is full")
        self.log.info("webinar_registered", webinar_id=str(webinar["_id"]), user_sub=user)
        return updated

    def cancel(self, webinar_id: Any, actor: Any) -> None:
        webinar = self.load(webinar_id)
        user = actor_id(actor)
        if not any(r.get("user") == user for r in webinar.get("registeredUsers") or []):
            raise BusinessRuleViolation(message="You are not registered for this webinar")
        self.coll.update_by_id(webinar["_id"], {"$pull": {"registeredUsers": {"user": user}}})
        self.log.info("webinar_registration_cancelled", webinar_id=str(webinar["_id"]), user_sub=user)

    def set_status(self, webinar_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        payload = validate_payload(WebinarStatusIn, data)
        webinar = self.load(webinar_id)
        return self.coll.set_fields(webinar["_id"], {"status": payload.status}) or webinar

    def registrations(self, webinar_id: Any) -> list[dict[str, Any]]:
        return list(self.load(webinar_id).get("registeredUsers") or [])

    def for_user(self, actor: Any) -> list[dict[str, Any]]:
        return self.coll.find({"registeredUsers.user": actor_id(actor)}, sort=[("date", 1), ("_id", 1)])


webinars = WebinarService()
