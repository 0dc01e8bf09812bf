"""
MongoDB access helpers.

There is no module-level handle: the application factory connects once and
hands the Database to each repository, tests hand in an in-memory one.
"""

import logging
from contextlib import contextmanager
from typing import Optional

import pymongo
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import StorageTimeoutError, StorageUnavailableError

logger = logging.getLogger(__name__)

IDEAS = "idea"
USERS = "user"
ENGAGEMENTS = "engagement"


def connect(url: str, name: str, timeout_s: float = 10.0) -> Database:
    client = MongoClient(url, serverSelectionTimeoutMS=int(timeout_s * 1000))
    db = client[name]
    try:
        db.command("ping")
    except PyMongoError as exc:
        client.close()
        raise StorageUnavailableError("DB not found") from exc
    return db


def ensure_indexes(db: Database) -> None:
    # One record per (user, idea, kind); the ledger relies on this index
    # rejecting the second insert.
    db[ENGAGEMENTS].create_index(
        [("user_id", ASCENDING), ("idea_id", ASCENDING), ("kind", ASCENDING)],
        unique=True,
        name="engagement_unique",
    )
    db[ENGAGEMENTS].create_index([("user_id", ASCENDING), ("kind", ASCENDING)], name="engagement_by_user")
    db[IDEAS].create_index([("created_at", ASCENDING)], name="idea_created_at")


@contextmanager
def bounded(seconds: float):
    """Run storage calls under a deadline, translating driver failures."""
    try:
        with pymongo.timeout(seconds):
            yield
    except PyMongoError as exc:
        logger.warning("storage call failed: %s", type(exc).__name__)
        if exc.timeout:
            raise StorageTimeoutError() from exc
        raise StorageUnavailableError() from exc


def create_document(collection: Collection, data: dict) -> dict:
    doc = dict(data)
    res = collection.insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def get_documents(collection: Collection, filter_dict: Optional[dict] = None, sort=None) -> list:
    cursor = collection.find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)
