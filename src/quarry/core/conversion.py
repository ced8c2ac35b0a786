"""Value conversion contract and the built-in conversions.

A ValueConversion turns a non-NULL DatabaseValue into a typed Python value.
NULL handling is NOT a conversion concern: Row.convert() maps absence and
NULL to None before a conversion is ever consulted. A conversion only has
to answer "is this present value inside my domain?" and raise
ConversionError when it is not.

Built-ins follow SQLite's storage classes and never guess: text "12" is
not an integer, and an integer is not text.
"""

from enum import Enum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from quarry.contracts.enums import StorageClass
from quarry.contracts.errors import ConversionError
from quarry.contracts.values import DatabaseValue

T_co = TypeVar("T_co", covariant=True)
E = TypeVar("E", bound=Enum)


@runtime_checkable
class ValueConversion(Protocol[T_co]):
    """Maps a present DatabaseValue to a typed value.

    Implementations raise ConversionError for values outside their domain.
    """

    @property
    def target(self) -> str:
        """Human-readable name of the produced type, used in error messages."""
        ...

    def decode(self, value: DatabaseValue) -> T_co:
        """Convert a non-NULL value.

        Raises:
            ConversionError: If the value cannot represent the target type
        """
        ...


class _BuiltinConversion:
    """Shared NULL guard for the built-in conversions."""

    target = "object"

    def decode(self, value: DatabaseValue) -> Any:
        if value.is_null:
            raise ConversionError(value, self.target, detail="NULL has no typed representation")
        return self._decode(value)

    def _decode(self, value: DatabaseValue) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} target={self.target}>"


class IntegerConversion(_BuiltinConversion):
    """INT64 as-is, DOUBLE only when integral."""

    target = "int"

    def _decode(self, value: DatabaseValue) -> int:
        match value.storage:
            case StorageClass.INT64:
                return value.value  # type: ignore[no-any-return]
            case StorageClass.DOUBLE if value.value.is_integer():
                return int(value.value)
            case _:
                raise ConversionError(value, self.target)


class RealConversion(_BuiltinConversion):
    target = "float"

    def _decode(self, value: DatabaseValue) -> float:
        match value.storage:
            case StorageClass.DOUBLE:
                return value.value  # type: ignore[no-any-return]
            case StorageClass.INT64:
                return float(value.value)
            case _:
                raise ConversionError(value, self.target)


class BooleanConversion(_BuiltinConversion):
    """Numeric values, zero is False."""

    target = "bool"

    def _decode(self, value: DatabaseValue) -> bool:
        match value.storage:
            case StorageClass.INT64 | StorageClass.DOUBLE:
                return bool(value.value)
            case _:
                raise ConversionError(value, self.target)


class TextConversion(_BuiltinConversion):
    """TEXT as-is, BLOB when it holds valid UTF-8."""

    target = "str"

    def _decode(self, value: DatabaseValue) -> str:
        match value.storage:
            case StorageClass.TEXT:
                return value.value  # type: ignore[no-any-return]
            case StorageClass.BLOB:
                try:
                    return value.value.decode("utf-8")  # type: ignore[no-any-return]
                except UnicodeDecodeError as e:
                    raise ConversionError(value, self.target, detail=str(e)) from e
            case _:
                raise ConversionError(value, self.target)


class BlobConversion(_BuiltinConversion):
    """BLOB as-is, TEXT as its UTF-8 encoding."""

    target = "bytes"

    def _decode(self, value: DatabaseValue) -> bytes:
        match value.storage:
            case StorageClass.BLOB:
                return value.value  # type: ignore[no-any-return]
            case StorageClass.TEXT:
                return value.value.encode("utf-8")  # type: ignore[no-any-return]
            case _:
                raise ConversionError(value, self.target)


class EnumConversion(_BuiltinConversion, Generic[E]):
    """Looks an enum member up by value (text or integer).

    Example:
        >>> EnumConversion(ConflictPolicy).decode(DatabaseValue.text("ignore"))
        <ConflictPolicy.IGNORE: 'ignore'>
    """

    def __init__(self, enum_type: type[E]) -> None:
        self.enum_type = enum_type
        self.target = enum_type.__name__

    def _decode(self, value: DatabaseValue) -> E:
        if value.storage not in (StorageClass.TEXT, StorageClass.INT64):
            raise ConversionError(value, self.target)
        try:
            return self.enum_type(value.value)
        except ValueError as e:
            raise ConversionError(value, self.target, detail=f"not a valid {self.target}") from e


INTEGER = IntegerConversion()
REAL = RealConversion()
BOOLEAN = BooleanConversion()
TEXT = TextConversion()
BLOB = BlobConversion()
