"""Exceptions raised by the persistence pipeline and the row layer.

Engine errors (constraint violations, syntax errors) are NOT wrapped here:
they come from SQLAlchemy as ``sqlalchemy.exc.DBAPIError`` subclasses and
propagate unchanged. The classes below cover the failures this package
detects itself, so callers can tell "my own hook is buggy" apart from
"the database rejected the write".
"""

from collections.abc import Mapping
from typing import Any


class PersistenceCallbackMisuseError(RuntimeError):
    """Raised when an around-hook does not invoke its action exactly once.

    This is a programmer error in the record type, not a database error.
    When it is raised because the action was never invoked, the insert
    never happened and no did_* hook has fired.

    Attributes:
        hook: Name of the misbehaving hook ("around_save" or "around_insert")
    """

    def __init__(self, hook: str, *, reason: str = "did not invoke its action") -> None:
        self.hook = hook
        super().__init__(f"Persistence callback misuse: {hook} {reason}. Around hooks must invoke their action exactly once.")


class RecordNotFoundError(LookupError):
    """Raised when a typed fetch required a row and none came back.

    Typically the outcome of an INSERT ... RETURNING under the IGNORE
    conflict policy when the row already existed.

    Attributes:
        table_name: Table the record belongs to
        key: Column values identifying the record
    """

    def __init__(self, table_name: str, key: Mapping[str, Any]) -> None:
        self.table_name = table_name
        self.key = dict(key)
        rendered = ", ".join(f"{name} = {value!r}" for name, value in self.key.items())
        super().__init__(f"Record not found in table {table_name}: {rendered}")


class ConversionError(ValueError):
    """Raised when a present value is outside the target type's domain.

    Absence (missing column, NULL) is NOT a conversion error: it converts
    to None. This error means the value exists but cannot be parsed.

    Attributes:
        value: The offending DatabaseValue
        target: Description of the target type
        column: Column the value was read from, if known
    """

    def __init__(self, value: Any, target: str, *, column: str | None = None, detail: str | None = None) -> None:
        self.value = value
        self.target = target
        self.column = column
        self.detail = detail
        location = f" in column {column!r}" if column is not None else ""
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Could not convert {value}{location} to {target}{suffix}")


class ColumnNotFoundError(KeyError):
    """Raised by Row.require() when no column matches the requested name."""

    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(column)

    def __str__(self) -> str:
        return f"No such column: {self.column!r}"


class StaleRowError(RuntimeError):
    """Raised when a borrowed row is read after its cursor step ended.

    Rows yielded while iterating a RowCursor share the cursor's per-step
    buffer. Advancing or closing the cursor invalidates them; call
    Row.copy() to keep a row beyond its step.
    """
