"""
Engagement ledger.

Append-only record of who liked or made which idea. Uniqueness of
(user_id, idea_id, kind) is enforced by the unique index created in
database.ensure_indexes, never by looking before inserting: two callers
racing on the same pair both reach insert_one and the index lets exactly
one through. DuplicateKeyError is the "already engaged" signal.
"""

import logging
import time
from typing import Iterator, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import ENGAGEMENTS, bounded
from errors import AlreadyEngagedError, IdeaNotFoundError
from ideas import IdeaRepository
from schemas import Engagement, EngagementKind

logger = logging.getLogger(__name__)


class EngagementLedger:
    def __init__(self, db: Database, ideas: IdeaRepository, timeout_s: float = 30.0):
        self._engagements = db[ENGAGEMENTS]
        self._ideas = ideas
        self._timeout_s = timeout_s

    def record_engagement(self, user_id: int, idea_id: ObjectId, kind: EngagementKind) -> None:
        if not self._ideas.exists(idea_id):
            raise IdeaNotFoundError()

        with bounded(self._timeout_s):
            try:
                self._engagements.insert_one(
                    {
                        "user_id": user_id,
                        "idea_id": idea_id,
                        "kind": kind.value,
                        "created_at": int(time.time()),
                    }
                )
            except DuplicateKeyError:
                logger.info("user %s already did %s on idea %s", user_id, kind.value, idea_id)
                raise AlreadyEngagedError()
        logger.info("user %s did %s on idea %s", user_id, kind.value, idea_id)

    def remove_engagement(self, user_id: int, idea_id: ObjectId, kind: EngagementKind) -> bool:
        """Compensation for a record whose counter increment failed. Not an unlike."""
        with bounded(self._timeout_s):
            res = self._engagements.delete_one({"user_id": user_id, "idea_id": idea_id, "kind": kind.value})
        return res.deleted_count > 0

    def list_engagements(self, user_id: int, kind: Optional[EngagementKind] = None) -> Iterator[Engagement]:
        query = {"user_id": user_id}
        if kind is not None:
            query["kind"] = kind.value
        with bounded(self._timeout_s):
            docs = list(self._engagements.find(query).sort("created_at", -1))
        return (
            Engagement(
                user_id=d["user_id"],
                idea_id=str(d["idea_id"]),
                kind=EngagementKind(d["kind"]),
                created_at=d["created_at"],
            )
            for d in docs
        )

    def count(self, idea_id: ObjectId, kind: EngagementKind) -> int:
        with bounded(self._timeout_s):
            return self._engagements.count_documents({"idea_id": idea_id, "kind": kind.value})
