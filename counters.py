import logging

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import IDEAS, bounded
from errors import IdeaNotFoundError
from schemas import EngagementKind

logger = logging.getLogger(__name__)


class CounterSync:
    """Keeps an idea's makers/gazers in step with the engagement ledger.

    Only ever called after the ledger accepted the record; see
    AuthGateway.engage for the compensation when the increment fails.
    """

    def __init__(self, db: Database, timeout_s: float = 30.0):
        self._ideas = db[IDEAS]
        self._timeout_s = timeout_s

    def apply_engagement_effect(self, idea_id: ObjectId, kind: EngagementKind) -> dict:
        with bounded(self._timeout_s):
            idea = self._ideas.find_one_and_update(
                {"_id": idea_id},
                {"$inc": {kind.counter: 1}},
                return_document=ReturnDocument.AFTER,
            )
        if idea is None:
            raise IdeaNotFoundError()
        return idea

    def reconcile(self, idea_id: ObjectId, ledger) -> dict:
        """Set both counters to the ledger's cardinality for this idea."""
        counts = {kind.counter: ledger.count(idea_id, kind) for kind in EngagementKind}
        with bounded(self._timeout_s):
            idea = self._ideas.find_one_and_update(
                {"_id": idea_id},
                {"$set": counts},
                return_document=ReturnDocument.AFTER,
            )
        if idea is None:
            raise IdeaNotFoundError()
        logger.info("reconciled idea %s to %s", idea_id, counts)
        return idea
