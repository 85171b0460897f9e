from __future__ import annotations

from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.database import Database

from ...observability.logging import get_logger
from .client import get_database
from .retry import mongo_call

# Unique indexes are the backstop for every uniqueness rule the services
# pre-check; a lost race surfaces as StoreConflict.
INDEXES: dict[str, list[IndexModel]] = {
    "categories": [
        IndexModel([("name", ASCENDING)], unique=True),
        IndexModel([("parent", ASCENDING)]),
    ],
    "products": [
        IndexModel([("sku", ASCENDING)]),
        IndexModel([("category", ASCENDING)]),
        IndexModel([("name", ASCENDING)]),
    ],
    "courses": [IndexModel([("title", ASCENDING)], unique=True)],
    "webinars": [IndexModel([("date", DESCENDING)])],
    "feedbacks": [
        IndexModel([("user", ASCENDING), ("itemId", ASCENDING)], unique=True),
        IndexModel([("itemId", ASCENDING), ("isPublished", ASCENDING)]),
    ],
    "services": [IndexModel([("name", ASCENDING)], unique=True)],
    "inventories": [
        IndexModel([("sku", ASCENDING)], unique=True),
        IndexModel([("product", ASCENDING)]),
    ],
    "meetings": [IndexModel([("meetLink", ASCENDING)], unique=True)],
    "toys": [IndexModel([("name", ASCENDING)]), IndexModel([("category", ASCENDING)])],
    "toyunits": [
        IndexModel([("toyId", ASCENDING), ("unitNumber", ASCENDING)], unique=True),
    ],
    "toyborrowings": [
        IndexModel([("toyId", ASCENDING), ("returnDate", ASCENDING)]),
        IndexModel([("borrowerId", ASCENDING)]),
        IndexModel([("email", ASCENDING)]),
        IndexModel([("dueDate", ASCENDING)]),
    ],
    "borrowers": [IndexModel([("email", ASCENDING)], unique=True)],
    "emails": [IndexModel([("createdAt", DESCENDING)])],
}


def ensure_indexes(db: Database | None = None) -> None:
    log = get_logger("indexes")
    target = db if db is not None else get_database()
    for name, models in INDEXES.items():
        def _op(name: str = name, models: list[IndexModel] = models):
            return target[name].create_indexes(models)

        created = mongo_call("create_indexes", _op, collection=name)
        log.info("indexes_ensured", collection=name, indexes=created)
