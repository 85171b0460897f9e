"""Services, recipes and detox plans: plain CRUD plus small extras."""

from __future__ import annotations

from typing import Any, get_args

from ..errors import BusinessRuleViolation
from ..query.builder import QuerySpec
from ..schemas.content import DetoxPlanIn, RecipeIn, ServiceCategory, ServiceIn
from .resource import ResourceService


class ClinicServiceService(ResourceService):
    collection_name = "services"
    model = ServiceIn
    not_found_message = "Service not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="name",
        search_fields=("name", "description"),
        field_types={"duration": "int", "price": "number", "isActive": "bool"},
    )

    def by_category(self, category: str) -> list[dict[str, Any]]:
        if category not in get_args(ServiceCategory):
            raise BusinessRuleViolation(message="Invalid category specified")
        return self.coll.find({"category": category, "isActive": True}, sort=[("name", 1), ("_id", 1)])


class RecipeService(ResourceService):
    collection_name = "recipes"
    model = RecipeIn
    not_found_message = "Recipe not found"
    query_spec = QuerySpec(
        default_sort="-createdAt",
        search_fields=("title", "description", "tags"),
        field_types={"servings": "int", "downloads": "int", "isGlutenFree": "bool"},
    )

    def before_create(self, doc, *, actor=None):
        doc["downloads"] = 0
        return doc

    def record_download(self, recipe_id: Any) -> dict[str, Any]:
        recipe = self.load(recipe_id)
        updated = self.coll.update_by_id(recipe["_id"], {"$inc": {"downloads": 1}})
        return updated or recipe


class DetoxPlanService(ResourceService):
    collection_name = "detoxplans"
    model = DetoxPlanIn
    not_found_message = "Detox plan not found"
    query_spec = QuerySpec(default_sort="-createdAt", search_fields=("title", "description"))


clinic_services = ClinicServiceService()
recipes = RecipeService()
detox_plans = DetoxPlanService()
