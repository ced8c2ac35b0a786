# src/quarry/conversions/hookspecs.py
"""pluggy hook specifications for value conversions.

Plugins map Python types to the ValueConversion that decodes them, so that
rows can be read by type (``manager.get(Decimal)``) instead of by
conversion object.

Usage (implementing a plugin):
    from quarry.conversions.hookspecs import hookimpl

    class MoneyConversions:
        @hookimpl
        def quarry_get_conversions(self):
            return {Decimal: DecimalConversion()}
"""

from typing import TYPE_CHECKING, Any

import pluggy

if TYPE_CHECKING:
    from quarry.core.conversion import ValueConversion

PROJECT_NAME = "quarry"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class QuarryConversionSpec:
    """Hook specifications for conversion plugins."""

    @hookspec
    def quarry_get_conversions(self) -> dict[type, "ValueConversion[Any]"]:  # type: ignore[empty-body]
        """Return conversions keyed by the Python type they produce.

        Returns:
            Mapping of target type to conversion instance
        """
