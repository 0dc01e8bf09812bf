import pytest
from bson import ObjectId

from database import IDEAS
from errors import IdeaNotFoundError
from schemas import EngagementKind

from tests.conftest import ALICE, BOB


class TestApplyEngagementEffect:
    def test_like_increments_gazers_only(self, counters, idea_id) -> None:
        idea = counters.apply_engagement_effect(idea_id, EngagementKind.LIKE)
        assert idea["gazers"] == 1
        assert idea["makers"] == 0

    def test_make_increments_makers_only(self, counters, idea_id) -> None:
        idea = counters.apply_engagement_effect(idea_id, EngagementKind.MAKE)
        assert idea["makers"] == 1
        assert idea["gazers"] == 0

    def test_missing_idea_raises_not_found(self, counters) -> None:
        with pytest.raises(IdeaNotFoundError):
            counters.apply_engagement_effect(ObjectId(), EngagementKind.LIKE)


class TestReconcile:
    def test_sets_counters_to_ledger_cardinality(self, db, counters, ledger, idea_id) -> None:
        ledger.record_engagement(ALICE.id, idea_id, EngagementKind.LIKE)
        ledger.record_engagement(BOB.id, idea_id, EngagementKind.LIKE)
        ledger.record_engagement(BOB.id, idea_id, EngagementKind.MAKE)

        idea = counters.reconcile(idea_id, ledger)

        assert idea["gazers"] == 2
        assert idea["makers"] == 1
        assert db[IDEAS].find_one({"_id": idea_id})["gazers"] == 2

    def test_missing_idea_raises_not_found(self, counters, ledger) -> None:
        with pytest.raises(IdeaNotFoundError):
            counters.reconcile(ObjectId(), ledger)
