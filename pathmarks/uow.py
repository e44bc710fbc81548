from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .db import Session
from .log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of an atomic operation: ``ok`` decides commit vs. rollback."""

    ok: bool
    value: Any = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(True, value)

    @classmethod
    def abort(cls, value: Any = None) -> "Outcome":
        return cls(False, value)

    def __iter__(self):
        # Allows ``ok, value = repo.in_unit_of_work(op)``.
        yield self.ok
        yield self.value


class UnitOfWork:
    """Runs an operation inside one transaction of ``session``.

    The operation commits on ``Outcome.success``, rolls back on
    ``Outcome.abort`` (returned unchanged), and rolls back then re-raises on
    any exception. A call made while the session already has a transaction
    open joins it: the outermost call alone decides commit or rollback.
    """

    def __init__(self, session: Session):
        self.session = session

    def run(self, operation: Callable[[], Outcome]) -> Outcome:
        if self.session.in_transaction:
            return _checked(operation())

        self.session.begin()
        try:
            outcome = _checked(operation())
        except Exception:
            self.session.rollback()
            log.exception("Could not perform atomic operation; transaction rolled back.")
            raise
        if not outcome.ok:
            log.info("Operation outcome was %r; rolling back.", outcome)
            self.session.rollback()
            return outcome
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            log.exception("Commit failed; transaction rolled back.")
            raise
        return outcome


def _checked(outcome: Any) -> Outcome:
    if isinstance(outcome, Outcome):
        return outcome
    if isinstance(outcome, tuple) and len(outcome) == 2:
        return Outcome(bool(outcome[0]), outcome[1])
    raise TypeError(f"atomic operation must return Outcome or (ok, value), got {type(outcome).__name__}")
