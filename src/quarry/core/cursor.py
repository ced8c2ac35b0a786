"""RowCursor: steps a SQLAlchemy result and yields borrowed rows.

The cursor owns a single StepBuffer. Each step overwrites it, so the Row
yielded by the previous step becomes stale. Keep rows with Row.copy(),
or use fetch_one() / fetch_all(), which copy for you.

Usage:
    with RowCursor(conn.execute(text("SELECT * FROM player"))) as cursor:
        for row in cursor:
            names.append(row.convert("name", TEXT))
"""

from collections.abc import Callable, Iterator
from typing import Any, Self, TypeVar

from sqlalchemy.engine import CursorResult

from quarry.contracts.values import DatabaseValue
from quarry.core.conversion import ValueConversion
from quarry.core.row import ColumnIndex, Row, StepBuffer

T = TypeVar("T")


class RowCursor:
    """Iterator of borrowed rows over one executed statement."""

    def __init__(self, result: CursorResult[Any]) -> None:
        self._result = result
        self._index = ColumnIndex(result.keys() if result.returns_rows else ())
        self._buffer = StepBuffer()
        self._closed = False

    @property
    def column_names(self) -> tuple[str, ...]:
        return self._index.names

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> Row:
        if self._closed or not self._result.returns_rows:
            raise StopIteration
        raw = self._result.fetchone()
        if raw is None:
            self.close()
            raise StopIteration
        self._buffer.load(tuple(DatabaseValue.from_python(value) for value in raw))
        return Row._borrow(self._index, self._buffer)

    def fetch_one(self) -> Row | None:
        """Owned copy of the next row, or None when exhausted."""
        row = next(self, None)
        if row is None:
            return None
        return row.copy()

    def fetch_all(self) -> list[Row]:
        """Owned copies of all remaining rows."""
        return [row.copy() for row in self]

    def fetch_value(self, conversion: ValueConversion[T]) -> T | None:
        """First column of the next row, converted; None when exhausted or NULL."""
        row = next(self, None)
        if row is None:
            return None
        return row.convert(0, conversion)

    def fetch_values(self, conversion: ValueConversion[T]) -> list[T | None]:
        """First column of every remaining row, converted."""
        return [row.convert(0, conversion) for row in self]

    def map(self, fn: Callable[[Row], T]) -> Iterator[T]:
        """Lazily apply fn to each borrowed row while it is current."""
        return (fn(row) for row in self)

    def close(self) -> None:
        """Release the result and invalidate the current borrowed row."""
        if self._closed:
            return
        self._closed = True
        self._buffer.invalidate()
        self._result.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()
