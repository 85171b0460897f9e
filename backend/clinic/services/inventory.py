from __future__ import annotations

import re
from typing import Any, Callable

from ..db.mongo.ids import to_public, utcnow
from ..errors import BusinessRuleViolation, NotFound
from ..query.builder import QuerySpec
from ..schemas.catalog import InventoryIn, InventoryStockIn
from ..schemas.common import validate_payload
from .products import products
from .resource import ResourceService, actor_id

ProductLookup = Callable[..., Any]


def is_low_stock(doc: dict[str, Any]) -> bool:
    available = int(doc.get("quantity") or 0) - int(doc.get("reservedQuantity") or 0)
    return available <= int(doc.get("lowStockThreshold") or 0)


class InventoryService(ResourceService):
    collection_name = "inventories"
    model = InventoryIn
    not_found_message = "Inventory item not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="-createdAt",
        search_fields=("productName", "sku", "location"),
        field_types={
            "quantity": "int",
            "reservedQuantity": "int",
            "lowStockThreshold": "int",
            "product": "objectid",
        },
    )

    def __init__(self, product_lookup: ProductLookup, **kwargs: Any):
        super().__init__(**kwargs)
        self.product_lookup = product_lookup

    def _product(self, product_id: Any) -> dict[str, Any]:
        product = self.product_lookup(product_id=product_id)
        if not product:
            raise NotFound(message="Product not found")
        return product

    def before_create(self, doc, *, actor=None):
        product = self._product(doc["product"])
        if self.coll.exists({"product": product["_id"]}):
            raise BusinessRuleViolation(message="Inventory already exists for this product")
        doc["productName"] = product.get("name")
        doc["stockUpdates"] = []
        return doc

    def before_update(self, current, fields, *, actor=None):
        product = self._product(fields["product"])
        if product["_id"] != current.get("product") and self.coll.exists({"product": product["_id"]}):
            raise BusinessRuleViolation(message="Inventory already exists for this product")
        fields["productName"] = product.get("name")
        return fields

    def present(self, doc):
        out = to_public(doc)
        out["isLowStock"] = is_low_stock(doc)
        return out

    def for_product(self, product_id: Any) -> dict[str, Any]:
        product = self._product(product_id)
        doc = self.coll.find_one({"product": product["_id"]})
        if not doc:
            raise NotFound(message="Inventory not found for this product")
        return doc

    def low_stock(self) -> list[dict[str, Any]]:
        docs = self.coll.find({}, sort=[("quantity", 1), ("_id", 1)])
        return [d for d in docs if is_low_stock(d)]

    def update_stock(self, data: dict[str, Any], *, actor: Any = None) -> dict[str, Any]:
        payload = validate_payload(InventoryStockIn, data)
        if payload.productId is not None:
            current = self.coll.find_one({"product": payload.productId})
        elif payload.productName:
            current = self.coll.find_one(
                {"productName": {"$regex": re.escape(payload.productName), "$options": "i"}}
            )
        else:
            raise BusinessRuleViolation(message="Either productId or productName is required")
        if not current:
            raise self.not_found()

        entry = {
            "previousStock": int(current.get("quantity") or 0),
            "newStock": payload.newStock,
            "updatedBy": actor_id(actor),
            "updateDate": utcnow(),
        }
        if payload.notes:
            entry["notes"] = payload.notes
        updated = self.coll.update_by_id(
            current["_id"],
            {
                "$set": {"quantity": payload.newStock, "lastRestocked": entry["updateDate"]},
                "$push": {"stockUpdates": entry},
            },
        )
        self.log.info(
            "inventory_stock_updated",
            id=str(current["_id"]),
            previous=entry["previousStock"],
            new=payload.newStock,
        )
        return updated or current


inventory = InventoryService(product_lookup=products.lookup)
