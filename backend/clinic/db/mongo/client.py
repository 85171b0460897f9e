from __future__ import annotations

from pymongo import MongoClient
from pymongo.database import Database

from ...settings import settings

_client: MongoClient | None = None
_database: Database | None = None


def mongo_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=int(settings.mongodb_timeout_ms),
            retryWrites=True,
            appname="clinic-backend",
        )
    return _client


def get_database() -> Database:
    global _database
    if _database is None:
        _database = mongo_client()[settings.mongodb_db_name]
    return _database


def bind_database(db: Database | None) -> None:
    """Point the process at an already constructed database handle.

    Passing None drops the binding so the next call reconnects from settings.
    """
    global _database
    _database = db


def close_client() -> None:
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None
