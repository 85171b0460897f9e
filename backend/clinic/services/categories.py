from __future__ import annotations

from typing import Any

from ..db.mongo.collection import get_collection
from ..db.mongo.ids import to_public
from ..errors import BusinessRuleViolation, NotFound
from ..query.builder import QuerySpec
from ..schemas.catalog import AssignProductsIn, CategoryIn
from ..schemas.common import validate_payload
from .resource import ResourceService

# Guard against corrupt parent chains that already loop.
_MAX_DEPTH = 64


class CategoryService(ResourceService):
    collection_name = "categories"
    model = CategoryIn
    not_found_message = "Category not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="name",
        search_fields=("name", "description"),
        field_types={"isActive": "bool", "parent": "objectid"},
    )

    @property
    def products(self):
        return get_collection("products")

    def _require_parent(self, parent_id: Any) -> dict[str, Any]:
        parent = self.coll.get(parent_id)
        if not parent:
            raise NotFound(message="Parent category not found")
        return parent

    def before_create(self, doc, *, actor=None):
        if doc.get("parent") is not None:
            self._require_parent(doc["parent"])
        doc.setdefault("products", [])
        return doc

    def before_update(self, current, fields, *, actor=None):
        parent_id = fields.get("parent")
        if parent_id is None:
            return fields
        if parent_id == current["_id"]:
            raise BusinessRuleViolation(message="Category cannot be a parent of itself")

        parent = self._require_parent(parent_id)
        # Walk up from the new parent; meeting this category means a cycle.
        seen = {parent["_id"]}
        node = parent
        for _ in range(_MAX_DEPTH):
            up = node.get("parent")
            if up is None:
                break
            if up == current["_id"]:
                raise BusinessRuleViolation(message="Category cannot be moved under its own subcategory")
            if up in seen:
                break
            seen.add(up)
            node = self.coll.get(up)
            if not node:
                break
        return fields

    def before_delete(self, current, *, actor=None):
        if self.coll.exists({"parent": current["_id"]}):
            raise BusinessRuleViolation(message="Cannot delete category with subcategories")
        if self.products.exists({"category": current["_id"]}):
            raise BusinessRuleViolation(message="Cannot delete category with associated products")
        return None

    def with_subcategories(self, doc: dict[str, Any]) -> dict[str, Any]:
        out = to_public(doc)
        subs = self.coll.find({"parent": doc["_id"]}, projection={"name": 1}, sort=[("name", 1)])
        out["subcategories"] = to_public(subs)
        return out

    def tree(self) -> list[dict[str, Any]]:
        roots = self.coll.find({"parent": None}, sort=[("name", 1), ("_id", 1)])
        return [self.with_subcategories(r) for r in roots]

    def by_name(self, name: str) -> dict[str, Any]:
        doc = self.coll.find_one({"name": name, "isActive": True})
        if not doc:
            raise NotFound(message="Category not found")
        return doc

    def subcategory_ids(self, category_id: Any) -> list[Any]:
        subs = self.coll.find({"parent": category_id}, projection={"_id": 1})
        return [s["_id"] for s in subs]

    def assign_products(self, category_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        payload = validate_payload(AssignProductsIn, data)
        category = self.load(category_id)

        product_ids = list(dict.fromkeys(payload.products))
        found = self.products.count({"_id": {"$in": product_ids}})
        if found != len(product_ids):
            raise BusinessRuleViolation(message="One or more product IDs are invalid")

        updated = self.coll.set_fields(category["_id"], {"products": product_ids})
        self.products.update_many({"_id": {"$in": product_ids}}, {"$set": {"category": category["_id"]}})
        self.log.info("category_products_assigned", category_id=str(category["_id"]), count=len(product_ids))
        return updated or category


categories = CategoryService()
