"""Tests for the around-action guard."""

import pytest

from quarry.contracts.errors import PersistenceCallbackMisuseError
from quarry.contracts.results import InsertionSuccess
from quarry.persistence.pipeline import AroundAction, InsertOutcome


def make_outcome() -> InsertOutcome[None]:
    return InsertOutcome(inserted=InsertionSuccess(table_name="player", row_id=1), returned=None)


class TestAroundAction:
    def test_invocation_runs_work_once(self) -> None:
        calls: list[int] = []

        def work() -> InsertOutcome[None]:
            calls.append(1)
            return make_outcome()

        action: AroundAction[InsertionSuccess] = AroundAction("around_insert", work, lambda outcome: outcome.inserted)
        inserted = action()
        assert inserted.row_id == 1
        assert action.invoked
        assert action.completed
        assert action.outcome().inserted is inserted
        assert calls == [1]

    def test_second_invocation_raises(self) -> None:
        action: AroundAction[InsertionSuccess] = AroundAction("around_insert", make_outcome, lambda outcome: outcome.inserted)
        action()
        with pytest.raises(PersistenceCallbackMisuseError, match="more than once"):
            action()

    def test_outcome_before_invocation(self) -> None:
        action: AroundAction[InsertionSuccess] = AroundAction("around_save", make_outcome, lambda outcome: outcome.inserted)
        with pytest.raises(PersistenceCallbackMisuseError, match="around_save did not invoke its action"):
            action.outcome()

    def test_outcome_after_failed_work(self) -> None:
        def work() -> InsertOutcome[None]:
            raise OSError("disk full")

        action: AroundAction[InsertionSuccess] = AroundAction("around_insert", work, lambda outcome: outcome.inserted)
        with pytest.raises(OSError):
            action()
        assert action.invoked
        assert not action.completed
        with pytest.raises(PersistenceCallbackMisuseError, match="returned after its action failed"):
            action.outcome()
