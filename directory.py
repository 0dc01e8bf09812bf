import logging
import time

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import USERS, bounded
from schemas import Identity, User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Local record of every identity that has logged in.

    First write wins: once a record exists, later logins never touch it,
    even when the provider reports a different display name.
    """

    def __init__(self, db: Database, timeout_s: float = 10.0):
        self._users = db[USERS]
        self._timeout_s = timeout_s

    def ensure_provisioned(self, identity: Identity) -> None:
        record = User(_id=identity.id, login=identity.login, name=identity.name, created_at=int(time.time()))
        with bounded(self._timeout_s):
            try:
                res = self._users.update_one(
                    {"_id": identity.id},
                    {"$setOnInsert": record.model_dump(by_alias=True, exclude={"id"})},
                    upsert=True,
                )
            except DuplicateKeyError:
                # Lost an upsert race; the other writer provisioned it.
                return
        if res.upserted_id is not None:
            logger.info("provisioned user %s (%s)", identity.id, identity.login)
