"""Tests for PersistableRecord insert operations and lifecycle hooks."""

from collections.abc import Callable, Iterator
from typing import Any, Self

import pytest
from sqlalchemy import Connection, column, event, text
from sqlalchemy.exc import IntegrityError

from quarry.contracts.enums import ConflictPolicy
from quarry.contracts.errors import PersistenceCallbackMisuseError, RecordNotFoundError
from quarry.contracts.results import InsertionSuccess, PersistenceSuccess
from quarry.core.conversion import INTEGER, TEXT
from quarry.core.cursor import RowCursor
from quarry.core.database import Database
from quarry.core.row import Row
from quarry.persistence.records import FetchableRecord, PersistableRecord

EXPECTED_ORDER = [
    "will_save",
    "around_save:enter",
    "will_insert",
    "around_insert:enter",
    "around_insert:exit",
    "did_insert",
    "around_save:exit",
    "did_save",
]


class Player(PersistableRecord):
    """Records every hook it sees."""

    table_name = "player"
    primary_key = ("name",)
    database_columns = ("id", "name", "score")

    def __init__(self, name: str, score: int | None = None) -> None:
        self.id: int | None = None
        self.name = name
        self.score = score
        self.events: list[str] = []

    def encode(self) -> dict[str, Any]:
        values: dict[str, Any] = {"name": self.name}
        if self.score is not None:
            values["score"] = self.score
        return values

    def will_save(self, conn: Connection) -> None:
        self.events.append("will_save")

    def around_save(self, conn: Connection, save: Callable[[], PersistenceSuccess]) -> PersistenceSuccess:
        self.events.append("around_save:enter")
        saved = save()
        self.events.append("around_save:exit")
        return saved

    def will_insert(self, conn: Connection) -> None:
        self.events.append("will_insert")

    def around_insert(self, conn: Connection, insert: Callable[[], InsertionSuccess]) -> InsertionSuccess:
        self.events.append("around_insert:enter")
        inserted = insert()
        self.events.append("around_insert:exit")
        return inserted

    def did_insert(self, inserted: InsertionSuccess) -> None:
        self.events.append("did_insert")
        self.id = inserted.row_id

    def did_save(self, saved: PersistenceSuccess) -> None:
        self.events.append("did_save")


class IgnoringPlayer(Player):
    conflict_policy = ConflictPolicy.IGNORE


class PlayerRow(FetchableRecord):
    def __init__(self, id: int, name: str, score: int) -> None:
        self.id = id
        self.name = name
        self.score = score

    @classmethod
    def from_row(cls, row: Row) -> Self:
        return cls(id=row.require("id", INTEGER), name=row.require("name", TEXT), score=row.require("score", INTEGER))


@pytest.fixture
def conn(db: Database) -> Iterator[Connection]:
    with db.connection() as connection:
        yield connection


@pytest.fixture
def insert_count(db: Database) -> Iterator[list[str]]:
    """INSERT statements sent to the driver during the test."""
    seen: list[str] = []

    def record(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool) -> None:
        if statement.lstrip().upper().startswith("INSERT"):
            seen.append(statement)

    event.listen(db.engine, "before_cursor_execute", record)
    yield seen
    event.remove(db.engine, "before_cursor_execute", record)


def player_count(conn: Connection) -> int:
    return conn.execute(text("SELECT count(*) FROM player")).scalar_one()


class TestInsert:
    """Tests for insert()."""

    def test_inserts_row(self, conn: Connection) -> None:
        Player("Arthur", 10).insert(conn)
        assert conn.execute(text("SELECT name, score FROM player")).one() == ("Arthur", 10)

    def test_hooks_fire_once_in_order(self, conn: Connection) -> None:
        player = Player("Arthur")
        player.insert(conn)
        assert player.events == EXPECTED_ORDER

    def test_did_insert_receives_row_id(self, conn: Connection) -> None:
        Player("Arthur").insert(conn)
        player = Player("Barbara")
        player.insert(conn)
        assert player.id == 2

    def test_single_statement(self, conn: Connection, insert_count: list[str]) -> None:
        Player("Arthur").insert(conn)
        assert len(insert_count) == 1

    def test_success_values_are_encoded_container(self, conn: Connection) -> None:
        seen: list[InsertionSuccess] = []

        class Spy(Player):
            def did_insert(self, inserted: InsertionSuccess) -> None:
                seen.append(inserted)

        Spy("Arthur", 5).insert(conn)
        assert seen[0].table_name == "player"
        assert dict(seen[0].values) == {"name": "Arthur", "score": 5}

    def test_default_values(self, db: Database) -> None:
        class Counter(PersistableRecord):
            table_name = "counter"

            def encode(self) -> dict[str, Any]:
                return {}

        with db.connection() as conn:
            conn.execute(text("CREATE TABLE counter (id INTEGER PRIMARY KEY, hits INTEGER DEFAULT 0)"))
            Counter().insert(conn)
            Counter().insert(conn)
            assert conn.execute(text("SELECT count(*) FROM counter")).scalar_one() == 2

    def test_missing_table_name(self, conn: Connection) -> None:
        class Nameless(PersistableRecord):
            def encode(self) -> dict[str, Any]:
                return {"name": "x"}

        with pytest.raises(ValueError, match="must define 'table_name'"):
            Nameless().insert(conn)


class TestConflictPolicies:
    """Tests for ABORT, IGNORE and REPLACE."""

    def test_abort_raises_engine_error(self, conn: Connection) -> None:
        Player("Arthur").insert(conn)
        player = Player("Arthur")
        with pytest.raises(IntegrityError):
            player.insert(conn)
        assert "did_insert" not in player.events
        assert "did_save" not in player.events

    def test_ignore_inserts_nothing(self, conn: Connection) -> None:
        Player("Arthur", 10).insert(conn)
        player = Player("Arthur", 20)
        player.insert(conn, on_conflict=ConflictPolicy.IGNORE)
        assert player_count(conn) == 1
        assert conn.execute(text("SELECT score FROM player")).scalar_one() == 10
        assert player.events == EXPECTED_ORDER

    def test_type_default_policy(self, conn: Connection) -> None:
        Player("Arthur").insert(conn)
        IgnoringPlayer("Arthur").insert(conn)
        assert player_count(conn) == 1

    def test_explicit_policy_overrides_type_default(self, conn: Connection) -> None:
        Player("Arthur").insert(conn)
        with pytest.raises(IntegrityError):
            IgnoringPlayer("Arthur").insert(conn, on_conflict=ConflictPolicy.ABORT)

    def test_replace(self, conn: Connection) -> None:
        Player("Arthur", 10).insert(conn)
        Player("Arthur", 20).insert(conn, on_conflict=ConflictPolicy.REPLACE)
        assert player_count(conn) == 1
        assert conn.execute(text("SELECT score FROM player")).scalar_one() == 20


class TestCallbackMisuse:
    """Around-hooks must invoke their action exactly once."""

    def test_around_insert_not_invoked(self, conn: Connection, insert_count: list[str]) -> None:
        class Skipper(Player):
            def around_insert(self, conn: Connection, insert: Callable[[], InsertionSuccess]) -> InsertionSuccess:
                self.events.append("around_insert:enter")
                return InsertionSuccess(table_name="player", row_id=None)

        player = Skipper("Arthur")
        with pytest.raises(PersistenceCallbackMisuseError, match="did not invoke its action") as exc_info:
            player.insert(conn)
        assert exc_info.value.hook == "around_insert"
        assert insert_count == []
        assert player_count(conn) == 0
        assert player.events == ["will_save", "around_save:enter", "will_insert", "around_insert:enter"]

    def test_around_save_not_invoked(self, conn: Connection) -> None:
        class Skipper(Player):
            def around_save(self, conn: Connection, save: Callable[[], PersistenceSuccess]) -> PersistenceSuccess:
                return PersistenceSuccess(InsertionSuccess(table_name="player", row_id=None))

        player = Skipper("Arthur")
        with pytest.raises(PersistenceCallbackMisuseError) as exc_info:
            player.insert(conn)
        assert exc_info.value.hook == "around_save"
        assert player.events == ["will_save"]
        assert player_count(conn) == 0

    def test_invoked_twice(self, conn: Connection, insert_count: list[str]) -> None:
        class Repeater(Player):
            def around_insert(self, conn: Connection, insert: Callable[[], InsertionSuccess]) -> InsertionSuccess:
                insert()
                return insert()

        with pytest.raises(PersistenceCallbackMisuseError, match="more than once"):
            Repeater("Arthur").insert(conn)
        assert len(insert_count) == 1

    def test_swallowed_failure(self, conn: Connection) -> None:
        class Swallower(Player):
            def around_insert(self, conn: Connection, insert: Callable[[], InsertionSuccess]) -> InsertionSuccess:
                try:
                    return insert()
                except IntegrityError:
                    return InsertionSuccess(table_name="player", row_id=None)

        Player("Arthur").insert(conn)
        player = Swallower("Arthur")
        with pytest.raises(PersistenceCallbackMisuseError, match="returned after its action failed"):
            player.insert(conn)
        assert "did_insert" not in player.events

    def test_around_may_return_derived_value(self, conn: Connection) -> None:
        class Wrapper(Player):
            def around_insert(self, conn: Connection, insert: Callable[[], InsertionSuccess]) -> InsertionSuccess:
                inserted = insert()
                return InsertionSuccess(table_name="renamed", row_id=inserted.row_id)

        player = Wrapper("Arthur")
        player.insert(conn)
        assert player.id == 1


class TestHookFailures:
    def test_will_save_aborts_everything(self, conn: Connection, insert_count: list[str]) -> None:
        class Refuser(Player):
            def will_save(self, conn: Connection) -> None:
                self.events.append("will_save")
                raise PermissionError("read only")

        player = Refuser("Arthur")
        with pytest.raises(PermissionError):
            player.insert(conn)
        assert player.events == ["will_save"]
        assert insert_count == []

    def test_will_insert_aborts_statement(self, conn: Connection, insert_count: list[str]) -> None:
        class Refuser(Player):
            def will_insert(self, conn: Connection) -> None:
                raise PermissionError("read only")

        player = Refuser("Arthur")
        with pytest.raises(PermissionError):
            player.insert(conn)
        assert player.events == ["will_save", "around_save:enter"]
        assert insert_count == []

    def test_did_insert_failure_skips_did_save(self, conn: Connection) -> None:
        class Failing(Player):
            def did_insert(self, inserted: InsertionSuccess) -> None:
                self.events.append("did_insert")
                raise RuntimeError("boom")

        player = Failing("Arthur")
        with pytest.raises(RuntimeError, match="boom"):
            player.insert(conn)
        assert "did_save" not in player.events
        # The statement itself ran; rollback belongs to the transaction
        assert player_count(conn) == 1


class TestInsertAndFetch:
    """Tests for insert_and_fetch() and its variants."""

    def test_returns_fetched_value(self, conn: Connection) -> None:
        player = Player("Arthur")
        score = player.insert_and_fetch(conn, lambda cursor: cursor.fetch_value(INTEGER), selection=["score"])
        assert score == 1000
        assert player.events == EXPECTED_ORDER

    def test_column_selection(self, conn: Connection) -> None:
        row = Player("Arthur").insert_and_fetch(conn, RowCursor.fetch_one, selection=[column("id"), column("score")])
        assert row is not None
        assert row.column_names == ("id", "score")
        assert row.convert("id", INTEGER) == 1

    def test_single_statement(self, conn: Connection, insert_count: list[str]) -> None:
        Player("Arthur").insert_and_fetch(conn, RowCursor.fetch_all, selection=["*"])
        assert len(insert_count) == 1
        assert "RETURNING" in insert_count[0]

    def test_ignored_conflict_fetches_nothing(self, conn: Connection) -> None:
        Player("Arthur").insert(conn)
        player = IgnoringPlayer("Arthur")
        score = player.insert_and_fetch(conn, lambda cursor: cursor.fetch_value(INTEGER), selection=["score"])
        assert score is None
        assert player.events == EXPECTED_ORDER

    def test_empty_selection_rejected_before_hooks(self, conn: Connection, insert_count: list[str]) -> None:
        player = Player("Arthur")
        with pytest.raises(ValueError, match="Invalid empty selection"):
            player.insert_and_fetch(conn, RowCursor.fetch_all, selection=[])
        assert player.events == []
        assert insert_count == []

    def test_selecting_builder(self, conn: Connection) -> None:
        score = Player("Arthur", 7).insert_and_fetch_selecting(
            conn,
            lambda cursor: cursor.fetch_value(INTEGER),
            lambda columns: [columns.score],
        )
        assert score == 7

    def test_selecting_builder_empty(self, conn: Connection) -> None:
        with pytest.raises(ValueError, match="Invalid empty selection"):
            Player("Arthur").insert_and_fetch_selecting(conn, RowCursor.fetch_all, lambda columns: [])

    def test_fetch_failure_propagates(self, conn: Connection) -> None:
        def fetch(cursor: RowCursor) -> None:
            raise LookupError("nothing to see")

        player = Player("Arthur")
        with pytest.raises(LookupError):
            player.insert_and_fetch(conn, fetch, selection=["id"])
        assert "did_insert" not in player.events


class TestInsertAndFetchAs:
    def test_builds_record(self, conn: Connection) -> None:
        fetched = Player("Arthur", 42).insert_and_fetch_as(conn, PlayerRow)
        assert (fetched.id, fetched.name, fetched.score) == (1, "Arthur", 42)

    def test_ignored_conflict_raises_not_found(self, conn: Connection) -> None:
        Player("Arthur").insert(conn)
        player = Player("Arthur")
        with pytest.raises(RecordNotFoundError) as exc_info:
            player.insert_and_fetch_as(conn, PlayerRow, on_conflict=ConflictPolicy.IGNORE)
        assert exc_info.value.table_name == "player"
        assert exc_info.value.key == {"name": "Arthur"}
        assert "did_insert" not in player.events


class TestFetchableRecord:
    def test_fetch_all(self, conn: Connection) -> None:
        Player("Arthur", 1).insert(conn)
        Player("Barbara", 2).insert(conn)
        cursor = RowCursor(conn.execute(text("SELECT * FROM player ORDER BY id")))
        assert [record.name for record in PlayerRow.fetch_all(cursor)] == ["Arthur", "Barbara"]

    def test_fetch_one_exhausted(self, conn: Connection) -> None:
        cursor = RowCursor(conn.execute(text("SELECT * FROM player")))
        assert PlayerRow.fetch_one(cursor) is None


def test_record_key_defaults_to_all_values() -> None:
    class Keyless(PersistableRecord):
        table_name = "t"

        def encode(self) -> dict[str, Any]:
            return {"a": 1, "b": 2}

    assert Keyless().record_key() == {"a": 1, "b": 2}
