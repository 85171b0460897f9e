from __future__ import annotations

from typing import Any

from ..errors import BusinessRuleViolation, Forbidden
from ..query.builder import QuerySpec
from ..schemas.learning import WorkshopIn
from .resource import ResourceService, actor_id


def ensure_subscribed(actor: Any, message: str) -> None:
    """Members with an active subscription pass; admins always pass."""
    if getattr(actor, "is_admin", False):
        return
    if not getattr(actor, "is_subscribed", False):
        raise Forbidden(message=message)


class WorkshopService(ResourceService):
    collection_name = "workshops"
    model = WorkshopIn
    not_found_message = "Workshop not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="date",
        search_fields=("title", "description", "instructor", "location"),
        field_types={
            "date": "date",
            "price": "number",
            "maxParticipants": "int",
            "currentParticipants": "int",
        },
    )

    def before_create(self, doc, *, actor=None):
        doc["registeredUsers"] = []
        # Only registration moves the participant count.
        doc["currentParticipants"] = 0
        return doc

    def present(self, doc):
        out = super().present(doc)
        out["availableSpots"] = max(0, int(doc.get("maxParticipants") or 0) - int(doc.get("currentParticipants") or 0))
        return out

    def register(self, workshop_id: Any, actor: Any) -> dict[str, Any]:
        workshop = self.load(workshop_id)
        ensure_subscribed(actor, "Only subscribed users can register for workshops.")

        user = actor_id(actor)
        if user in (workshop.get("registeredUsers") or []):
            raise BusinessRuleViolation(message="You are already registered for this workshop.")
        capacity = int(workshop.get("maxParticipants") or 0)
        if int(workshop.get("currentParticipants") or 0) >= capacity:
            raise BusinessRuleViolation(message="This workshop has reached full capacity.")

        updated = self.coll.find_one_and_update(
            {
                "_id": workshop["_id"],
                "registeredUsers": {"$ne": user},
                "currentParticipants": {"$lt": capacity},
            },
            {"$push": {"registeredUsers": user}, "$inc": {"currentParticipants": 1}},
        )
        if updated is None:
            raise BusinessRuleViolation(message="This workshop has reached full capacity.")

        self.log.info("workshop_registered", workshop_id=str(workshop["_id"]), user_sub=user)
        return {
            "workshopId": str(updated["_id"]),
            "title": updated.get("title"),
            "availableSpots": capacity - int(updated.get("currentParticipants") or 0),
        }


workshops = WorkshopService()
