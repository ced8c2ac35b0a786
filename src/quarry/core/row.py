"""Row: an immutable, case-insensitive view over one result row.

A Row is an ordered sequence of (column name, DatabaseValue) pairs plus a
mapping of named child rows ("scopes"), typically one per joined relation.

Ownership:
    OWNED rows hold their own tuple of values and stay valid forever.
    BORROWED rows are yielded by RowCursor and read the cursor's per-step
    buffer. They are valid only until the cursor advances or closes; any
    read after that raises StaleRowError. Row.copy() is the only way to
    turn a borrowed row into an owned one.

Lookup:
    Name lookup folds case and returns the LEFTMOST matching column, so
    for ``SELECT 1 AS name, 2 AS NAME`` every spelling of "name" yields 1.
    Every lookup path (value, convert, coalesce, has_column) resolves
    through ColumnIndex.resolve().
"""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Protocol, TypeVar, overload

from quarry.contracts.errors import ColumnNotFoundError, ConversionError, StaleRowError
from quarry.contracts.values import DatabaseValue
from quarry.core.conversion import BLOB, ValueConversion

T = TypeVar("T")


class NamedColumn(Protocol):
    """Anything with a column name: sqlalchemy.column("a"), table.c.a, ..."""

    @property
    def name(self) -> str: ...


ColumnRef = str | NamedColumn


def column_name(ref: ColumnRef) -> str:
    """Return the column name a reference points to.

    Raises:
        TypeError: If the reference is neither a string nor named
    """
    if isinstance(ref, str):
        return ref
    try:
        name = ref.name
    except AttributeError:
        raise TypeError(f"Column reference must be a str or expose .name, got {type(ref).__name__}: {ref!r}") from None
    if not isinstance(name, str):
        raise TypeError(f"Column reference {ref!r} has no usable name")
    return name


def fold(name: str) -> str:
    """Case-fold a column name the way SQLite compares identifiers."""
    return name.lower()


class ColumnIndex:
    """Column names of a row layout with a folded-name lookup table.

    Built once per layout. A RowCursor shares one index between all the
    rows it yields; copies share the index of their source.
    """

    __slots__ = ("names", "_positions")

    def __init__(self, names: Iterable[str]) -> None:
        self.names: tuple[str, ...] = tuple(names)
        positions: dict[str, list[int]] = {}
        for position, name in enumerate(self.names):
            positions.setdefault(fold(name), []).append(position)
        self._positions: dict[str, tuple[int, ...]] = {key: tuple(found) for key, found in positions.items()}

    def __len__(self) -> int:
        return len(self.names)

    def resolve(self, ref: ColumnRef) -> int | None:
        """Position of the leftmost column matching ref, or None."""
        found = self._positions.get(fold(column_name(ref)))
        if not found:
            return None
        return found[0]


class StepBuffer:
    """Values of the current step of a cursor.

    Every load() or invalidate() bumps the generation, which is how
    borrowed rows detect that their step is over.
    """

    __slots__ = ("values", "generation")

    def __init__(self) -> None:
        self.values: tuple[DatabaseValue, ...] = ()
        self.generation = 0

    def load(self, values: tuple[DatabaseValue, ...]) -> None:
        self.generation += 1
        self.values = values

    def invalidate(self) -> None:
        self.generation += 1
        self.values = ()


class Row:
    """Ordered (column name, DatabaseValue) pairs with named child scopes.

    Example:
        row = Row([("id", 1), ("name", "Arthur")], scopes={"team": Row({"name": "Reds"})})
        row["NAME"]                        # DatabaseValue.text("Arthur")
        row.convert("id", INTEGER)         # 1
        row.scopes_tree["team"]["name"]    # DatabaseValue.text("Reds")
    """

    __slots__ = ("_index", "_owned", "_buffer", "_generation", "_scopes")

    def __init__(
        self,
        columns: Mapping[str, object] | Iterable[tuple[str, object]] = (),
        *,
        scopes: Mapping[str, "Row"] | None = None,
    ) -> None:
        """Build an owned row.

        Args:
            columns: (name, value) pairs or a mapping, in column order.
                Values may be DatabaseValue or plain driver values.
            scopes: Named child rows

        Raises:
            TypeError: If a value has no storage class or a scope is not a Row
        """
        pairs = list(columns.items()) if isinstance(columns, Mapping) else list(columns)
        self._index = ColumnIndex(name for name, _ in pairs)
        self._owned: tuple[DatabaseValue, ...] = tuple(DatabaseValue.from_python(value) for _, value in pairs)
        self._buffer: StepBuffer | None = None
        self._generation = 0
        self._scopes = _freeze_scopes(scopes)

    @classmethod
    def _borrow(cls, index: ColumnIndex, buffer: StepBuffer) -> "Row":
        """Borrowed view over the buffer's current step."""
        row = cls.__new__(cls)
        row._index = index
        row._owned = ()
        row._buffer = buffer
        row._generation = buffer.generation
        row._scopes = _EMPTY_SCOPES
        return row

    @classmethod
    def from_sqlalchemy(cls, row: Any) -> "Row":
        """Owned row from a sqlalchemy.engine.Row, keeping duplicate labels."""
        return cls(zip(row._fields, tuple(row), strict=True))

    # === Storage ===

    @property
    def is_borrowed(self) -> bool:
        """True while this row reads a cursor's step buffer."""
        return self._buffer is not None

    def _values(self) -> tuple[DatabaseValue, ...]:
        if self._buffer is None:
            return self._owned
        if self._buffer.generation != self._generation:
            raise StaleRowError("Row was read after its cursor advanced or closed. Call copy() to keep a row beyond its step.")
        return self._buffer.values

    def copy(self) -> "Row":
        """Detached, owned snapshot with the same columns, values and scopes."""
        clone = Row.__new__(Row)
        clone._index = self._index
        clone._owned = self._values()
        clone._buffer = None
        clone._generation = 0
        clone._scopes = MappingProxyType({name: scope.copy() for name, scope in self._scopes.items()})
        return clone

    # === Columns ===

    @property
    def count(self) -> int:
        return len(self._index)

    def __len__(self) -> int:
        return len(self._index)

    @property
    def column_names(self) -> tuple[str, ...]:
        return self._index.names

    @property
    def database_values(self) -> tuple[DatabaseValue, ...]:
        return self._values()

    def __iter__(self) -> Iterator[tuple[str, DatabaseValue]]:
        return iter(zip(self._index.names, self._values(), strict=True))

    def has_column(self, name: ColumnRef) -> bool:
        """Case-insensitive column presence test."""
        return self._index.resolve(name) is not None

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.has_column(name)

    # === Values ===

    @overload
    def value(self, key: int) -> DatabaseValue: ...

    @overload
    def value(self, key: ColumnRef) -> DatabaseValue | None: ...

    def value(self, key: int | ColumnRef) -> DatabaseValue | None:
        """Raw value by index, name or column reference.

        Indexes must satisfy 0 <= key < count; negative indexes are not
        wrapped. Names are matched case-insensitively, leftmost match wins,
        and an unknown name yields None rather than an error.

        Raises:
            IndexError: If an integer index is out of range
        """
        if isinstance(key, int) and not isinstance(key, bool):
            return self._value_at(key)
        return self._lookup(key)

    @overload
    def __getitem__(self, key: int) -> DatabaseValue: ...

    @overload
    def __getitem__(self, key: ColumnRef) -> DatabaseValue | None: ...

    def __getitem__(self, key: int | ColumnRef) -> DatabaseValue | None:
        return self.value(key)

    def _value_at(self, index: int) -> DatabaseValue:
        if not 0 <= index < len(self._index):
            raise IndexError(f"Row index {index} out of range [0, {len(self._index)})")
        return self._values()[index]

    def _lookup(self, ref: ColumnRef) -> DatabaseValue | None:
        position = self._index.resolve(ref)
        if position is None:
            return None
        return self._values()[position]

    def _label(self, key: int | ColumnRef) -> str:
        if isinstance(key, int) and not isinstance(key, bool):
            return self._index.names[key]
        return column_name(key)

    def convert(self, key: int | ColumnRef, conversion: ValueConversion[T]) -> T | None:
        """Typed value, or None when the column is missing or NULL.

        Raises:
            ConversionError: If the value is present but outside the
                conversion's domain
            IndexError: If an integer index is out of range
        """
        value = self.value(key)
        if value is None or value.is_null:
            return None
        return _decode(conversion, value, self._label(key))

    def require(self, key: int | ColumnRef, conversion: ValueConversion[T]) -> T:
        """Typed value of a column that must exist and be non-NULL.

        Raises:
            ColumnNotFoundError: If no column matches
            ConversionError: If the value is NULL or cannot be converted
        """
        value = self.value(key)
        label = self._label(key)
        if value is None:
            raise ColumnNotFoundError(label)
        if value.is_null:
            raise ConversionError(value, conversion.target, column=label, detail="unexpected NULL")
        return _decode(conversion, value, label)

    def data(self, key: int | ColumnRef) -> bytes | None:
        """Raw bytes of a blob (or UTF-8 text) column; None if missing or NULL."""
        return self.convert(key, BLOB)

    @overload
    def coalesce(self, candidates: Iterable[ColumnRef]) -> DatabaseValue: ...

    @overload
    def coalesce(self, candidates: Iterable[ColumnRef], conversion: ValueConversion[T]) -> T | None: ...

    def coalesce(self, candidates: Iterable[ColumnRef], conversion: ValueConversion[T] | None = None) -> DatabaseValue | T | None:
        """First non-NULL value among candidate columns.

        Missing columns are skipped like NULL ones. With no candidates, or
        when all are missing or NULL, returns DatabaseValue.NULL (or None
        when a conversion is given).

        Example:
            row.coalesce(["nickname", "name"], TEXT)
        """
        for ref in candidates:
            value = self._lookup(ref)
            if value is None or value.is_null:
                continue
            if conversion is None:
                return value
            return _decode(conversion, value, column_name(ref))
        if conversion is None:
            return DatabaseValue.NULL
        return None

    # === Scopes ===

    @property
    def scopes(self) -> Mapping[str, "Row"]:
        """Direct child rows by scope name (case-sensitive)."""
        return self._scopes

    @property
    def scopes_tree(self) -> "ScopesTree":
        """Nested scope lookup by dotted path."""
        return ScopesTree(self)

    # === Comparison and rendering ===

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._index.names == other._index.names and self._values() == other._values()

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        pairs = " ".join(f"{name}:{value}" for name, value in self)
        return f"[{pairs}]"

    def __repr__(self) -> str:
        try:
            return f"<Row {self}>"
        except StaleRowError:
            return f"<Row stale columns={list(self._index.names)}>"


class ScopesTree:
    """Walks nested scopes of a row.

    ``tree["book.author"]`` is ``row.scopes["book"].scopes["author"]``.
    Any missing segment yields None.
    """

    __slots__ = ("_row",)

    def __init__(self, row: Row) -> None:
        self._row = row

    def get(self, path: str) -> Row | None:
        node = self._row
        for segment in path.split("."):
            child = node.scopes.get(segment)
            if child is None:
                return None
            node = child
        return node

    def __getitem__(self, path: str) -> Row | None:
        return self.get(path)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.get(path) is not None

    def paths(self) -> list[str]:
        """Dotted paths of every nested scope, breadth-first."""
        found: list[str] = []
        pending: list[tuple[str, Row]] = [(name, scope) for name, scope in self._row.scopes.items()]
        while pending:
            path, scope = pending.pop(0)
            found.append(path)
            pending.extend((f"{path}.{name}", child) for name, child in scope.scopes.items())
        return found


_EMPTY_SCOPES: Mapping[str, Row] = MappingProxyType({})


def _freeze_scopes(scopes: Mapping[str, Row] | None) -> Mapping[str, Row]:
    if not scopes:
        return _EMPTY_SCOPES
    for name, scope in scopes.items():
        if not isinstance(scope, Row):
            raise TypeError(f"Scope {name!r} must be a Row, got {type(scope).__name__}")
    return MappingProxyType(dict(scopes))


def _decode(conversion: ValueConversion[T], value: DatabaseValue, column: str) -> T:
    """Run a conversion, attaching the column name to its failures."""
    try:
        return conversion.decode(value)
    except ConversionError as e:
        if e.column is not None:
            raise
        raise ConversionError(e.value, e.target, column=column, detail=e.detail) from e


def rows_equal_with_scopes(left: Row, right: Row) -> bool:
    """Equality that also compares scope subtrees, recursively."""
    if left != right or left.scopes.keys() != right.scopes.keys():
        return False
    return all(rows_equal_with_scopes(scope, right.scopes[name]) for name, scope in left.scopes.items())
