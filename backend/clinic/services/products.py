from __future__ import annotations

from typing import Any

from ..db.mongo.collection import get_collection
from ..db.mongo.ids import parse_object_id, to_public
from ..errors import Conflict, NotFound, ValidationFailed
from ..query.builder import ListResult, QuerySpec
from ..schemas.catalog import ProductIn, StockIn
from ..schemas.common import validate_payload
from ..settings import settings
from .categories import categories
from .resource import ResourceService

FEATURED_LIMIT = 8


def discounted_price(doc: dict[str, Any]) -> float:
    price = float(doc.get("price") or 0)
    pct = float(doc.get("discountPercentage") or 0)
    kind = doc.get("discountType") or "none"
    if kind == "percentage" and pct > 0:
        return round(price - price * (pct / 100), 2)
    if kind == "fixed" and pct > 0:
        return max(0.0, round(price - pct, 2))
    return price


def stock_status(quantity: int, threshold: int) -> str:
    if quantity == 0:
        return "Out of Stock"
    if quantity <= threshold:
        return "Low Stock"
    return "In Stock"


class ProductService(ResourceService):
    collection_name = "products"
    model = ProductIn
    not_found_message = "Product not found"
    query_spec = QuerySpec(
        default_sort="-createdAt",
        search_fields=("name", "description", "sku"),
        field_types={
            "price": "number",
            "discountedPrice": "number",
            "discountPercentage": "number",
            "quantity": "int",
            "isActive": "bool",
            "isFeatured": "bool",
            "category": "objectid",
        },
    )

    @property
    def orders(self):
        return get_collection("orders")

    def _check_refs(self, doc: dict[str, Any], *, self_id: Any = None) -> None:
        if not categories.coll.get(doc["category"]):
            raise NotFound(message="Category not found")
        sku = doc.get("sku")
        if sku:
            clash: dict[str, Any] = {"sku": sku}
            if self_id is not None:
                clash["_id"] = {"$ne": self_id}
            if self.coll.exists(clash):
                raise Conflict(message="Duplicate field value entered")

    def before_create(self, doc, *, actor=None):
        self._check_refs(doc)
        doc["discountedPrice"] = discounted_price(doc)
        return doc

    def before_update(self, current, fields, *, actor=None):
        self._check_refs(fields, self_id=current["_id"])
        fields["discountedPrice"] = discounted_price(fields)
        return fields

    def before_delete(self, current, *, actor=None):
        # Products referenced by orders are retired instead of deleted.
        if self.orders.exists({"items.product": current["_id"]}):
            retired = self.coll.set_fields(current["_id"], {"status": "discontinued", "isActive": False})
            self.log.info("product_discontinued", id=str(current["_id"]))
            return retired or current
        return None

    # --- presentation ---

    def with_categories(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        ids = list({d["category"] for d in docs if d.get("category") is not None})
        names = {}
        if ids:
            for c in categories.coll.find({"_id": {"$in": ids}}, projection={"name": 1}):
                names[c["_id"]] = c
        out = []
        for d in docs:
            item = to_public(d)
            cat = names.get(d.get("category"))
            if cat is not None:
                item["category"] = to_public(cat)
            out.append(item)
        return out

    def present(self, doc):
        return self.with_categories([doc])[0]

    # --- queries ---

    def featured(self) -> list[dict[str, Any]]:
        return self.coll.find(
            {"isFeatured": True, "isActive": True},
            sort=[("createdAt", -1), ("_id", 1)],
            limit=FEATURED_LIMIT,
        )

    def by_category(self, category_id: Any, params: dict[str, Any]) -> ListResult:
        category = categories.load(category_id)
        ids = [category["_id"], *categories.subcategory_ids(category["_id"])]
        return self.list(params, base_filter={"category": {"$in": ids}})

    def by_name(self, name: str) -> dict[str, Any]:
        doc = self.coll.find_one({"name": name, "isActive": True})
        if not doc:
            raise self.not_found()
        return doc

    def update_stock(self, product_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        payload = validate_payload(StockIn, data)
        product = self.load(product_id)
        updated = self.coll.set_fields(product["_id"], {"quantity": payload.quantity}) or product
        self.log.info("product_stock_updated", id=str(product["_id"]), quantity=payload.quantity)
        return {"id": str(updated["_id"]), "name": updated.get("name"), "quantity": updated.get("quantity")}

    def _threshold(self, raw: Any) -> int:
        if raw in (None, ""):
            return int(settings.low_stock_threshold)
        try:
            value = int(str(raw))
        except ValueError:
            raise ValidationFailed.for_field("threshold", "threshold must be a positive integer")
        if value < 1:
            raise ValidationFailed.for_field("threshold", "threshold must be a positive integer")
        return value

    def _stock_rows(self, docs: list[dict[str, Any]], threshold: int) -> list[dict[str, Any]]:
        rows = []
        for item in self.with_categories(docs):
            qty = int(item.get("quantity") or 0)
            rows.append(
                {
                    "_id": item["_id"],
                    "id": item["_id"],
                    "name": item.get("name"),
                    "category": item.get("category"),
                    "quantity": qty,
                    "status": item.get("status"),
                    "stockStatus": stock_status(qty, threshold),
                }
            )
        return rows

    def low_stock(self, threshold: Any = None) -> list[dict[str, Any]]:
        limit = self._threshold(threshold)
        docs = self.coll.find(
            {"quantity": {"$lte": limit}, "status": {"$ne": "discontinued"}},
            projection={"name": 1, "category": 1, "quantity": 1, "status": 1},
            sort=[("quantity", 1), ("_id", 1)],
        )
        return self._stock_rows(docs, limit)

    def inventory_report(self, threshold: Any = None) -> list[dict[str, Any]]:
        limit = self._threshold(threshold)
        docs = self.coll.find(
            {"status": {"$ne": "discontinued"}},
            projection={"name": 1, "category": 1, "quantity": 1, "status": 1},
            sort=[("name", 1), ("_id", 1)],
        )
        return self._stock_rows(docs, limit)

    def lookup(self, product_id: Any = None, name: str | None = None) -> dict[str, Any] | None:
        """Product lookup handed to the inventory service."""
        if product_id is not None:
            oid = parse_object_id(product_id)
            return self.coll.get(oid) if oid is not None else None
        if name:
            return self.coll.find_one({"name": name})
        return None


products = ProductService()
