"""Conversions for the Python types every database value maps onto."""

from typing import Any

from quarry.conversions.hookspecs import hookimpl
from quarry.core.conversion import BLOB, BOOLEAN, INTEGER, REAL, TEXT, ValueConversion


class BuiltinConversions:
    """Registers int, float, bool, str and bytes."""

    @hookimpl
    def quarry_get_conversions(self) -> dict[type, ValueConversion[Any]]:
        return {
            int: INTEGER,
            float: REAL,
            bool: BOOLEAN,
            str: TEXT,
            bytes: BLOB,
        }
