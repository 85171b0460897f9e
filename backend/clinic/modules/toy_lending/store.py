from __future__ import annotations

from dataclasses import dataclass, field

from ...db.mongo.collection import MongoCollection, get_collection


@dataclass(frozen=True)
class ToyLendingStore:
    """Collections the lending workflow reads and writes."""

    toys: MongoCollection = field(default_factory=lambda: get_collection("toys"))
    units: MongoCollection = field(default_factory=lambda: get_collection("toyunits"))
    borrowings: MongoCollection = field(default_factory=lambda: get_collection("toyborrowings"))
    borrowers: MongoCollection = field(default_factory=lambda: get_collection("borrowers"))


def lending_store() -> ToyLendingStore:
    return ToyLendingStore()
