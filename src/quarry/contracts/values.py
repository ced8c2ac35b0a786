"""DatabaseValue: the raw value stored in one column of one row.

A tagged union over the five storage classes. Values coming back from the
driver are wrapped here before any typed conversion happens, so callers can
tell "NULL" apart from "integer zero" apart from "empty text".

Equality is structural per variant: ``int64(1)`` and ``double(1.0)`` are
different values even though Python's ``1 == 1.0``.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar

from quarry.contracts.enums import StorageClass

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_PAYLOAD_TYPES: dict[StorageClass, type | None] = {
    StorageClass.NULL: None,
    StorageClass.INT64: int,
    StorageClass.DOUBLE: float,
    StorageClass.TEXT: str,
    StorageClass.BLOB: bytes,
}


@dataclass(frozen=True)
class DatabaseValue:
    """One of NULL, INT64, DOUBLE, TEXT or BLOB.

    Invariants:
        - NULL carries None
        - every other variant carries exactly its payload type
          (bool is rejected for INT64, use from_python() to coerce it)
        - INT64 payloads fit in a signed 64-bit integer

    Example:
        >>> DatabaseValue.from_python(1)
        DatabaseValue(storage=<StorageClass.INT64: 'int64'>, value=1)
        >>> DatabaseValue.from_python(None).is_null
        True
    """

    storage: StorageClass
    value: Any = None

    NULL: ClassVar["DatabaseValue"]

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.storage]
        if expected is None:
            if self.value is not None:
                raise ValueError(f"NULL storage requires None value, got {self.value!r}")
            return
        if type(self.value) is not expected:
            raise TypeError(f"{self.storage} storage requires {expected.__name__} value, got {type(self.value).__name__}: {self.value!r}")
        if self.storage == StorageClass.INT64 and not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError(f"Integer {self.value} does not fit in 64 bits")

    # === Factories ===

    @classmethod
    def int64(cls, value: int) -> "DatabaseValue":
        return cls(StorageClass.INT64, value)

    @classmethod
    def double(cls, value: float) -> "DatabaseValue":
        return cls(StorageClass.DOUBLE, value)

    @classmethod
    def text(cls, value: str) -> "DatabaseValue":
        return cls(StorageClass.TEXT, value)

    @classmethod
    def blob(cls, value: bytes) -> "DatabaseValue":
        return cls(StorageClass.BLOB, value)

    @classmethod
    def from_python(cls, value: object) -> "DatabaseValue":
        """Wrap a value as returned by a DB-API driver.

        Args:
            value: None, bool, int, float, str, bytes-like, Decimal,
                date or datetime. Dates are stored as ISO-8601 text.

        Returns:
            The matching DatabaseValue (passes DatabaseValue through)

        Raises:
            TypeError: If the value has no storage class
        """
        match value:
            case DatabaseValue():
                return value
            case None:
                return cls.NULL
            case bool():
                return cls(StorageClass.INT64, int(value))
            case int():
                return cls(StorageClass.INT64, value)
            case float():
                return cls(StorageClass.DOUBLE, value)
            case str():
                return cls(StorageClass.TEXT, value)
            case bytes():
                return cls(StorageClass.BLOB, value)
            case bytearray() | memoryview():
                return cls(StorageClass.BLOB, bytes(value))
            case Decimal():
                if value == value.to_integral_value():
                    return cls(StorageClass.INT64, int(value))
                return cls(StorageClass.DOUBLE, float(value))
            case datetime() | date():
                return cls(StorageClass.TEXT, value.isoformat())
            case _:
                raise TypeError(f"Cannot store {type(value).__name__} in a database column: {value!r}")

    # === Accessors ===

    @property
    def is_null(self) -> bool:
        return self.storage == StorageClass.NULL

    def to_python(self) -> Any:
        """Return the bare payload (None for NULL)."""
        return self.value

    def __str__(self) -> str:
        match self.storage:
            case StorageClass.NULL:
                return "NULL"
            case StorageClass.TEXT:
                return json.dumps(self.value, ensure_ascii=False)
            case StorageClass.BLOB:
                return f"Blob({len(self.value)} bytes)"
            case _:
                return repr(self.value)


DatabaseValue.NULL = DatabaseValue(StorageClass.NULL)
