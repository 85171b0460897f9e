from __future__ import annotations

from typing import Any, Iterable

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from .client import get_database
from .errors import StoreNotFound
from .ids import utcnow
from .retry import NO_RETRY, mongo_call

SortSpec = list[tuple[str, int]]


class MongoCollection:
    """Thin wrapper over a pymongo collection.

    Every driver call goes through `mongo_call` so driver errors surface as
    `StoreError` subclasses. Writes stamp `createdAt` / `updatedAt`.
    """

    def __init__(self, name: str, *, timestamps: bool = True):
        self.name = str(name)
        self.timestamps = timestamps

    @property
    def raw(self) -> Collection:
        # Resolved per call so a rebound database is always honoured.
        return get_database()[self.name]

    # --- reads ---

    def find_one(
        self,
        filter: dict[str, Any],
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> dict[str, Any] | None:
        def _op():
            return self.raw.find_one(filter, projection=projection, sort=sort)

        return mongo_call("find_one", _op, collection=self.name, key=filter)

    def get(self, oid: ObjectId, *, projection: dict[str, Any] | None = None) -> dict[str, Any] | None:
        return self.find_one({"_id": oid}, projection=projection)

    def get_required(self, oid: ObjectId, *, message: str = "Resource not found") -> dict[str, Any]:
        doc = self.get(oid)
        if not doc:
            raise StoreNotFound(message=message, operation="find_one", collection=self.name, key={"_id": str(oid)})
        return doc

    def find(
        self,
        filter: dict[str, Any] | None = None,
        *,
        projection: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        def _op():
            cursor = self.raw.find(filter or {}, projection=projection)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(int(skip))
            if limit:
                cursor = cursor.limit(int(limit))
            return list(cursor)

        return mongo_call("find", _op, collection=self.name, key=filter)

    def count(self, filter: dict[str, Any] | None = None) -> int:
        def _op():
            return int(self.raw.count_documents(filter or {}))

        return mongo_call("count_documents", _op, collection=self.name, key=filter)

    def exists(self, filter: dict[str, Any]) -> bool:
        return self.find_one(filter, projection={"_id": 1}) is not None

    def distinct(self, field: str, filter: dict[str, Any] | None = None) -> list[Any]:
        def _op():
            return list(self.raw.distinct(field, filter or {}))

        return mongo_call("distinct", _op, collection=self.name, key=filter)

    def aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        def _op():
            return list(self.raw.aggregate(pipeline))

        return mongo_call("aggregate", _op, collection=self.name)

    # --- writes ---

    def _stamp_new(self, doc: dict[str, Any]) -> dict[str, Any]:
        out = dict(doc)
        if self.timestamps:
            now = utcnow()
            out.setdefault("createdAt", now)
            out["updatedAt"] = now
        return out

    def insert_one(self, doc: dict[str, Any]) -> dict[str, Any]:
        item = self._stamp_new(doc)

        def _op():
            res = self.raw.insert_one(item)
            item["_id"] = res.inserted_id
            return item

        return mongo_call("insert_one", _op, collection=self.name, retry_policy=NO_RETRY)

    def insert_many(self, docs: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        items = [self._stamp_new(d) for d in docs]
        if not items:
            return []

        def _op():
            res = self.raw.insert_many(items, ordered=True)
            for item, oid in zip(items, res.inserted_ids):
                item["_id"] = oid
            return items

        return mongo_call("insert_many", _op, collection=self.name, retry_policy=NO_RETRY)

    def _with_updated_at(self, update: dict[str, Any]) -> dict[str, Any]:
        out = {k: dict(v) if isinstance(v, dict) else v for k, v in update.items()}
        if self.timestamps:
            out.setdefault("$set", {})
            out["$set"]["updatedAt"] = utcnow()
        return out

    def find_one_and_update(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        *,
        upsert: bool = False,
        sort: SortSpec | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update and return the post-update document (or None)."""
        upd = self._with_updated_at(update)
        if upsert and self.timestamps:
            upd.setdefault("$setOnInsert", {})
            upd["$setOnInsert"].setdefault("createdAt", utcnow())

        def _op():
            return self.raw.find_one_and_update(
                filter,
                upd,
                upsert=upsert,
                sort=sort,
                return_document=ReturnDocument.AFTER,
            )

        return mongo_call(
            "find_one_and_update",
            _op,
            collection=self.name,
            key=filter,
            retry_policy=NO_RETRY if upsert else None,
        )

    def update_by_id(self, oid: ObjectId, update: dict[str, Any]) -> dict[str, Any] | None:
        return self.find_one_and_update({"_id": oid}, update)

    def set_fields(self, oid: ObjectId, fields: dict[str, Any]) -> dict[str, Any] | None:
        return self.update_by_id(oid, {"$set": dict(fields)})

    def update_many(self, filter: dict[str, Any], update: dict[str, Any]) -> int:
        upd = self._with_updated_at(update)

        def _op():
            return int(self.raw.update_many(filter, upd).modified_count)

        return mongo_call("update_many", _op, collection=self.name, key=filter)

    def replace(self, oid: ObjectId, doc: dict[str, Any]) -> dict[str, Any] | None:
        item = {k: v for k, v in doc.items() if k != "_id"}
        if self.timestamps:
            item["updatedAt"] = utcnow()

        def _op():
            return self.raw.find_one_and_replace(
                {"_id": oid},
                item,
                return_document=ReturnDocument.AFTER,
            )

        return mongo_call("find_one_and_replace", _op, collection=self.name, key={"_id": str(oid)})

    def delete_by_id(self, oid: ObjectId) -> bool:
        def _op():
            return self.raw.delete_one({"_id": oid}).deleted_count > 0

        return mongo_call("delete_one", _op, collection=self.name, key={"_id": str(oid)})

    def delete_many(self, filter: dict[str, Any]) -> int:
        def _op():
            return int(self.raw.delete_many(filter).deleted_count)

        return mongo_call("delete_many", _op, collection=self.name, key=filter)


_COLLECTIONS: dict[str, MongoCollection] = {}


def get_collection(name: str) -> MongoCollection:
    coll = _COLLECTIONS.get(name)
    if coll is None:
        coll = MongoCollection(name)
        _COLLECTIONS[name] = coll
    return coll
