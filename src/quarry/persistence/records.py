# src/quarry/persistence/records.py
"""Base classes for application records.

PersistableRecord turns an application object into an INSERT and runs its
lifecycle hooks around it. FetchableRecord builds an application object
from a Row.

Lifecycle Contract (per insert call, all hooks on the caller's thread):
    will_save -> around_save { will_insert -> around_insert { INSERT } -> did_insert } -> did_save

- will_save / will_insert: "before" notifications. Raising aborts the call;
  no statement runs and no later hook fires.
- around_save / around_insert: receive an action that MUST be invoked
  exactly once. Return its result (or something derived from it).
- did_insert / did_save: "after" notifications with the success value.
  If they raise, the call fails, but the row has been inserted at the
  statement level; rollback belongs to the surrounding transaction.

Every hook has a no-op default: override only the ones you need.

Example:
    class Player(PersistableRecord):
        table_name = "player"
        primary_key = ("id",)

        def __init__(self, name: str) -> None:
            self.id: int | None = None
            self.name = name

        def encode(self) -> dict[str, Any]:
            return {"id": self.id, "name": self.name}

        def did_insert(self, inserted: InsertionSuccess) -> None:
            self.id = inserted.row_id

    with db.connection() as conn:
        Player("Arthur").insert(conn)
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, Self, TypeVar

from sqlalchemy import Connection
from sqlalchemy.sql.base import ReadOnlyColumnCollection

from quarry.contracts.enums import ConflictPolicy
from quarry.contracts.errors import RecordNotFoundError
from quarry.contracts.results import InsertionSuccess, PersistenceSuccess
from quarry.core.cursor import RowCursor
from quarry.core.row import Row
from quarry.persistence.pipeline import run_insert
from quarry.persistence.statements import SelectionItem, record_table

T = TypeVar("T")
F = TypeVar("F", bound="FetchableRecord")

ColumnAccessor = ReadOnlyColumnCollection[str, Any]


class PersistableRecord(ABC):
    """Base class for records that can be inserted.

    Class attributes:
        table_name: Target table (required)
        conflict_policy: Default conflict policy when insert() gets none
        primary_key: Columns identifying a record, used in not-found errors
        database_columns: Columns offered to selection builders
    """

    table_name: ClassVar[str]
    conflict_policy: ClassVar[ConflictPolicy] = ConflictPolicy.ABORT
    primary_key: ClassVar[tuple[str, ...]] = ()
    database_columns: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    def encode(self) -> dict[str, Any]:
        """Column -> value container persisted by insert()."""
        ...

    @classmethod
    def resolve_table_name(cls) -> str:
        """The declared table name.

        Raises:
            ValueError: If the record type does not declare table_name
        """
        try:
            return cls.table_name
        except AttributeError:
            raise ValueError(f"Record {cls.__name__} must define 'table_name'. Add: table_name = 'your_table' to the class.") from None

    @classmethod
    def columns(cls) -> ColumnAccessor:
        """Column accessor handed to selection builders (``columns.score``)."""
        return record_table(cls.resolve_table_name(), cls.database_columns).c

    def record_key(self) -> dict[str, Any]:
        """Values identifying this record: primary key columns, else all."""
        values = self.encode()
        if not self.primary_key:
            return values
        return {name: values.get(name) for name in self.primary_key}

    # === Lifecycle hooks (no-op defaults) ===

    def will_save(self, conn: Connection) -> None:  # noqa: B027 - optional hook
        """Called first. Raise to abort the save."""
        pass

    def around_save(self, conn: Connection, save: Callable[[], PersistenceSuccess]) -> PersistenceSuccess:
        """Wraps will_insert, the insert and did_insert.

        Overrides MUST call ``save()`` exactly once.
        """
        return save()

    def will_insert(self, conn: Connection) -> None:  # noqa: B027 - optional hook
        """Called before the INSERT is built. Raise to abort."""
        pass

    def around_insert(self, conn: Connection, insert: Callable[[], InsertionSuccess]) -> InsertionSuccess:
        """Wraps the INSERT statement (and RETURNING fetch).

        Overrides MUST call ``insert()`` exactly once.
        """
        return insert()

    def did_insert(self, inserted: InsertionSuccess) -> None:  # noqa: B027 - optional hook
        """Called after a successful INSERT."""
        pass

    def did_save(self, saved: PersistenceSuccess) -> None:  # noqa: B027 - optional hook
        """Called last, after a successful save."""
        pass

    # === Insert ===

    def insert(self, conn: Connection, *, on_conflict: ConflictPolicy | None = None) -> None:
        """Execute an INSERT statement, running all lifecycle hooks.

        Args:
            conn: Connection to execute on
            on_conflict: Conflict policy; defaults to the type's conflict_policy

        Raises:
            sqlalchemy.exc.DBAPIError: On engine failure (e.g. constraint violation)
            PersistenceCallbackMisuseError: If an around-hook misbehaves
        """
        run_insert(self, conn, on_conflict=on_conflict, selection=(), fetch=None)

    def insert_and_fetch(
        self,
        conn: Connection,
        fetch: Callable[[RowCursor], T],
        *,
        selection: Sequence[SelectionItem],
        on_conflict: ConflictPolicy | None = None,
    ) -> T:
        """Execute an INSERT ... RETURNING and return what fetch() makes of it.

        Example:
            # INSERT INTO player (name) VALUES ('Alice') RETURNING score
            score = player.insert_and_fetch(
                conn, lambda cursor: cursor.fetch_value(INTEGER), selection=["score"]
            )

        Args:
            conn: Connection to execute on
            fetch: Called once with a cursor over the returned rows. Under
                the IGNORE policy the cursor may be empty.
            selection: Returned columns (must not be empty)
            on_conflict: Conflict policy; defaults to the type's conflict_policy

        Raises:
            ValueError: If selection is empty (checked before any hook runs)
        """
        if not selection:
            raise ValueError("Invalid empty selection")
        outcome = run_insert(self, conn, on_conflict=on_conflict, selection=selection, fetch=fetch)
        return outcome.returned  # type: ignore[return-value]

    def insert_and_fetch_selecting(
        self,
        conn: Connection,
        fetch: Callable[[RowCursor], T],
        select: Callable[[ColumnAccessor], Sequence[SelectionItem]],
        *,
        on_conflict: ConflictPolicy | None = None,
    ) -> T:
        """insert_and_fetch() with the selection computed from the columns.

        Example:
            score = player.insert_and_fetch_selecting(
                conn, lambda cursor: cursor.fetch_value(INTEGER), lambda c: [c.score]
            )
        """
        selection = list(select(type(self).columns()))
        return self.insert_and_fetch(conn, fetch, selection=selection, on_conflict=on_conflict)

    def insert_and_fetch_as(
        self,
        conn: Connection,
        record_type: type[F],
        *,
        on_conflict: ConflictPolicy | None = None,
    ) -> F:
        """Insert, and build a record_type from the inserted row.

        Selects record_type.database_selection (all columns by default).

        Raises:
            RecordNotFoundError: If no row came back, e.g. because the
                IGNORE policy skipped a conflicting insert
        """

        def fetch(cursor: RowCursor) -> F:
            fetched = record_type.fetch_one(cursor)
            if fetched is None:
                raise RecordNotFoundError(type(self).resolve_table_name(), self.record_key())
            return fetched

        return self.insert_and_fetch(conn, fetch, selection=record_type.database_selection, on_conflict=on_conflict)


class FetchableRecord(ABC):
    """Base class for records that can be built from a Row.

    from_row() receives a row that may be borrowed from a cursor: read
    what you need from it, do not keep it (or keep row.copy()).
    """

    database_selection: ClassVar[tuple[SelectionItem, ...]] = ("*",)

    @classmethod
    @abstractmethod
    def from_row(cls, row: Row) -> Self:
        """Build a record from a row."""
        ...

    @classmethod
    def fetch_one(cls, cursor: RowCursor) -> Self | None:
        """Record from the next row of the cursor, or None when exhausted."""
        row = next(cursor, None)
        if row is None:
            return None
        return cls.from_row(row)

    @classmethod
    def fetch_all(cls, cursor: RowCursor) -> list[Self]:
        return [cls.from_row(row) for row in cursor]
