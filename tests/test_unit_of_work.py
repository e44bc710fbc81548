from pathlib import Path

import pytest

from pathmarks.db import Session
from pathmarks.errors import HierarchyError
from pathmarks.model import BookmarkItem, ItemType
from pathmarks.uow import Outcome

USER = "alice"


def _folder(path, name):
    return BookmarkItem(path=path, display_name=name, owner=USER, type=ItemType.FOLDER)


def _committed_names(db_path: Path):
    with Session(db_path) as s:
        rows = s.cursor().execute("SELECT display_name FROM bookmarks ORDER BY display_name").fetchall()
    return [r[0] for r in rows]


def test_success_commits(repo):
    def op():
        a = repo.create(_folder("/", "A"))
        repo.create(_folder("/A", "B"))
        return Outcome.success(a.id)

    outcome = repo.in_unit_of_work(op)
    assert outcome.ok
    assert repo.get_by_id(outcome.value, USER) is not None
    assert _committed_names(repo.db_path) == ["A", "B"]


def test_abort_rolls_back_and_returns_outcome_unchanged(repo):
    repo.create(_folder("/", "keep"))
    before = repo.get_all(USER)

    def op():
        repo.create(_folder("/", "A"))
        repo.create(_folder("/A", "B"))
        return Outcome.abort("nothing to do")

    ok, value = repo.in_unit_of_work(op)
    assert ok is False
    assert value == "nothing to do"
    assert repo.get_all(USER) == before
    assert not repo.session.in_transaction


def test_exception_rolls_back_and_propagates(repo):
    def op():
        repo.create(_folder("/", "A"))
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        repo.in_unit_of_work(op)
    assert repo.get_all(USER) == []
    assert not repo.session.in_transaction


def test_failed_step_rolls_back_earlier_steps(repo):
    def op():
        a = repo.create(_folder("/", "A"))
        repo.reorder([a.id, "missing"], [1, 2], USER)
        return Outcome.success()

    with pytest.raises(HierarchyError):
        repo.in_unit_of_work(op)
    assert repo.get_all(USER) == []


def test_nested_calls_join_the_enclosing_transaction(repo):
    seen = []

    def inner():
        seen.append(repo.session.in_transaction)
        repo.create(_folder("/", "inner"))
        return Outcome.success()

    def outer():
        repo.in_unit_of_work(inner)
        # Not committed yet: another connection must not see it.
        seen.append(_committed_names(repo.db_path))
        return Outcome.abort()

    repo.in_unit_of_work(outer)
    assert seen == [True, []]
    assert repo.get_all(USER) == []


def test_nested_abort_leaves_decision_to_the_outer_call(repo):
    def outer():
        repo.create(_folder("/", "A"))
        missing = repo.update(BookmarkItem(path="/", display_name="x", owner=USER, id="missing"))
        return Outcome.success(missing)

    outcome = repo.in_unit_of_work(outer)
    assert outcome.ok and outcome.value is None
    assert _committed_names(repo.db_path) == ["A"]


def test_tuple_results_are_accepted(repo):
    assert repo.in_unit_of_work(lambda: (True, 5)) == Outcome.success(5)
    assert repo.in_unit_of_work(lambda: (False, None)).ok is False


def test_other_return_values_are_rejected_and_rolled_back(repo):
    def op():
        repo.create(_folder("/", "A"))
        return "done"

    with pytest.raises(TypeError):
        repo.in_unit_of_work(op)
    assert repo.get_all(USER) == []
