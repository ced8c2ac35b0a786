"""Persistence callback pipeline.

Drives the lifecycle hooks of a PersistableRecord around one INSERT:

    will_save
    around_save {
        will_insert
        around_insert {
            INSERT [RETURNING ...]  +  fetch
        }
        did_insert
    }
    did_save

Guarantees:
    - every hook fires at most once per call, in the order above
    - an around-hook must invoke its action exactly once. Not invoking it
      (or swallowing its failure) raises PersistenceCallbackMisuseError
      after the hook returns; invoking it twice raises from the second
      call without running the statement again
    - any exception aborts the remaining hooks immediately. Nothing is
      retried and nothing is rolled back here: the surrounding
      transaction (Database.connection()) owns rollback
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog
from sqlalchemy import Connection

from quarry.contracts.enums import ConflictPolicy
from quarry.contracts.errors import PersistenceCallbackMisuseError
from quarry.contracts.results import InsertionSuccess, PersistenceSuccess
from quarry.core.cursor import RowCursor
from quarry.persistence.statements import SelectionItem, build_insert

if TYPE_CHECKING:
    from quarry.persistence.records import PersistableRecord

logger = structlog.get_logger(__name__)

R = TypeVar("R")
S = TypeVar("S")


@dataclass(frozen=True)
class InsertOutcome(Generic[R]):
    """What one traversal of the pipeline produced."""

    inserted: InsertionSuccess
    returned: R


class AroundAction(Generic[S]):
    """Zero-argument action handed to an around-hook.

    The hook must call it exactly once and should return its result.
    The pipeline checks the ``completed`` flag after the hook returns
    instead of trusting the hook's return value.
    """

    def __init__(
        self,
        hook: str,
        work: Callable[[], InsertOutcome[Any]],
        present: Callable[[InsertOutcome[Any]], S],
    ) -> None:
        self.hook = hook
        self._work = work
        self._present = present
        self.invoked = False
        self._outcome: InsertOutcome[Any] | None = None

    @property
    def completed(self) -> bool:
        return self._outcome is not None

    def __call__(self) -> S:
        if self.invoked:
            reason = "invoked its action more than once"
            logger.warning("Persistence callback misuse", hook=self.hook, reason=reason)
            raise PersistenceCallbackMisuseError(self.hook, reason=reason)
        self.invoked = True
        self._outcome = self._work()
        return self._present(self._outcome)

    def outcome(self) -> InsertOutcome[Any]:
        """The action's outcome, once the hook has returned.

        Raises:
            PersistenceCallbackMisuseError: If the action never completed
        """
        if self._outcome is None:
            reason = "returned after its action failed" if self.invoked else "did not invoke its action"
            logger.warning("Persistence callback misuse", hook=self.hook, reason=reason)
            raise PersistenceCallbackMisuseError(self.hook, reason=reason)
        return self._outcome


def run_insert(
    record: "PersistableRecord",
    conn: Connection,
    *,
    on_conflict: ConflictPolicy | None,
    selection: Sequence[SelectionItem],
    fetch: Callable[[RowCursor], R] | None,
) -> InsertOutcome[R | None]:
    """Run the full save-level traversal for one record.

    Args:
        record: Record to insert
        conn: Connection to execute on (transaction owned by the caller)
        on_conflict: Explicit policy, or None for the record type's default
        selection: RETURNING selection; empty for a plain INSERT
        fetch: Called with a cursor over the RETURNING rows. Ignored when
            the selection is empty.

    Returns:
        The insertion report and the fetch function's result (None for a
        plain INSERT)
    """
    record.will_save(conn)

    save_action: AroundAction[PersistenceSuccess] = AroundAction(
        "around_save",
        lambda: _insert_with_callbacks(record, conn, on_conflict, selection, fetch),
        lambda outcome: PersistenceSuccess.from_insertion(outcome.inserted),
    )
    record.around_save(conn, save_action)
    outcome = save_action.outcome()

    record.did_save(PersistenceSuccess.from_insertion(outcome.inserted))
    return outcome


def _insert_with_callbacks(
    record: "PersistableRecord",
    conn: Connection,
    on_conflict: ConflictPolicy | None,
    selection: Sequence[SelectionItem],
    fetch: Callable[[RowCursor], R] | None,
) -> InsertOutcome[R | None]:
    """Insert-level traversal: will_insert, around_insert, did_insert."""
    record.will_insert(conn)

    insert_action: AroundAction[InsertionSuccess] = AroundAction(
        "around_insert",
        lambda: _execute_insert(record, conn, on_conflict, selection, fetch),
        lambda outcome: outcome.inserted,
    )
    record.around_insert(conn, insert_action)
    outcome = insert_action.outcome()

    record.did_insert(outcome.inserted)
    return outcome


def _execute_insert(
    record: "PersistableRecord",
    conn: Connection,
    on_conflict: ConflictPolicy | None,
    selection: Sequence[SelectionItem],
    fetch: Callable[[RowCursor], R] | None,
) -> InsertOutcome[R | None]:
    """Compile and execute the INSERT, then fetch the RETURNING rows."""
    record_type = type(record)
    table_name = record_type.resolve_table_name()
    policy = on_conflict if on_conflict is not None else record_type.conflict_policy
    values = dict(record.encode())

    stmt = build_insert(
        table_name,
        values,
        policy=policy,
        dialect_name=conn.dialect.name,
        selection=selection,
        columns=record_type.database_columns,
    )
    result = conn.execute(stmt)
    # Read before fetching: the driver reports the id as soon as the
    # statement has stepped, and fetch may exhaust and close the result.
    row_id = result.lastrowid

    returned: R | None = None
    if selection:
        with RowCursor(result) as cursor:
            if fetch is not None:
                returned = fetch(cursor)
    else:
        result.close()

    logger.debug(
        "Record inserted",
        table=table_name,
        conflict_policy=policy.value,
        returning=bool(selection),
        row_id=row_id,
    )
    return InsertOutcome(
        inserted=InsertionSuccess(table_name=table_name, row_id=row_id, values=values),
        returned=returned,
    )
