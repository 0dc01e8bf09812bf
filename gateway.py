"""
AuthGateway wires identity, directory, ledger and counters together.

Login:       code -> IdentityResolver.exchange_code -> UserDirectory.ensure_provisioned
Engagement:  bearer -> IdentityResolver -> EngagementLedger.record_engagement
             -> CounterSync.apply_engagement_effect, undoing the ledger
             record if the increment fails and recounting the idea.
"""

import logging
from typing import List, Optional, Tuple

from bson import ObjectId

from counters import CounterSync
from directory import UserDirectory
from errors import IdeaNotFoundError
from identity import IdentityResolver
from ledger import EngagementLedger
from schemas import BearerCredential, Engagement, EngagementKind, Identity

logger = logging.getLogger(__name__)


class AuthGateway:
    def __init__(
        self,
        resolver: IdentityResolver,
        directory: UserDirectory,
        ledger: EngagementLedger,
        counters: CounterSync,
    ):
        self.resolver = resolver
        self.directory = directory
        self.ledger = ledger
        self.counters = counters

    def login(self, code: str) -> Tuple[Identity, BearerCredential]:
        identity, credential = self.resolver.exchange_code(code)
        self.directory.ensure_provisioned(identity)
        return identity, credential

    def authenticate(self, raw_header: Optional[str]) -> Identity:
        credential = self.resolver.validate_bearer_header(raw_header)
        return self.resolver.resolve_identity(credential)

    def engage(self, identity: Identity, idea_id: ObjectId, kind: EngagementKind) -> dict:
        """Record the engagement and bump the counter as one unit.

        Returns the idea document with its updated counters.
        """
        self.ledger.record_engagement(identity.id, idea_id, kind)
        try:
            return self.counters.apply_engagement_effect(idea_id, kind)
        except Exception as exc:
            self._compensate(identity.id, idea_id, kind, exc)
            raise

    def engagements(self, identity: Identity, kind: Optional[EngagementKind] = None) -> List[Engagement]:
        return list(self.ledger.list_engagements(identity.id, kind))

    def _compensate(self, user_id: int, idea_id: ObjectId, kind: EngagementKind, cause: Exception) -> None:
        """Undo the ledger record, then recount the idea.

        A timed-out $inc may still have committed on the server, and a failed
        delete leaves a record the counter never saw, so the counters are
        always set from the ledger afterwards rather than assumed.
        """
        try:
            removed = self.ledger.remove_engagement(user_id, idea_id, kind)
        except Exception:
            logger.exception("could not remove %s record for user %s on idea %s", kind.value, user_id, idea_id)
        else:
            logger.warning(
                "counter update failed, removed %s engagement record for user %s on idea %s",
                "the" if removed else "no",
                user_id,
                idea_id,
            )

        if isinstance(cause, IdeaNotFoundError):
            return
        try:
            self.counters.reconcile(idea_id, self.ledger)
        except Exception:
            logger.exception("reconcile failed for idea %s, counters may be stale", idea_id)
