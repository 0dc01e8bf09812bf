import logging
import time
from typing import List, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from database import IDEAS, bounded, create_document, get_documents
from schemas import Idea

logger = logging.getLogger(__name__)


class IdeaRepository:
    """Plain CRUD over the idea collection."""

    def __init__(self, db: Database, timeout_s: float = 30.0):
        self._ideas = db[IDEAS]
        self._timeout_s = timeout_s

    def list_all(self) -> List[dict]:
        with bounded(self._timeout_s):
            return get_documents(self._ideas, sort=[("created_at", DESCENDING)])

    def insert(self, name: str, description: str, publisher: str) -> dict:
        idea = Idea(
            name=name,
            description=description,
            publisher=publisher,
            makers=0,
            gazers=0,
            created_at=int(time.time()),
        )
        with bounded(self._timeout_s):
            doc = create_document(self._ideas, idea.model_dump())
        logger.info("idea %s added by %s", doc["_id"], publisher)
        return doc

    def find_by_id(self, idea_id: ObjectId) -> Optional[dict]:
        with bounded(self._timeout_s):
            return self._ideas.find_one({"_id": idea_id})

    def exists(self, idea_id: ObjectId) -> bool:
        with bounded(self._timeout_s):
            return self._ideas.count_documents({"_id": idea_id}, limit=1) > 0

    def update_fields(self, idea_id: ObjectId, fields: dict) -> bool:
        with bounded(self._timeout_s):
            res = self._ideas.update_one({"_id": idea_id}, {"$set": fields})
        return res.matched_count > 0

    def delete(self, idea_id: ObjectId) -> bool:
        with bounded(self._timeout_s):
            res = self._ideas.delete_one({"_id": idea_id})
        return res.deleted_count > 0
