# src/quarry/conversions/manager.py
"""Conversion registry.

Uses pluggy for hook-based registration of conversions by Python type.
"""

from enum import Enum
from typing import Any, TypeVar

import pluggy
import structlog

from quarry.conversions.hookspecs import PROJECT_NAME, QuarryConversionSpec
from quarry.core.conversion import EnumConversion, ValueConversion

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ConversionManager:
    """Manages conversion registration and lookup by target type.

    Usage:
        manager = ConversionManager()
        manager.register_builtin_conversions()
        manager.register(MoneyConversions())

        price = row.convert("price", manager.get(Decimal))
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(QuarryConversionSpec)

        # Cache - map target type to conversion for duplicate detection
        self._conversions: dict[type, ValueConversion[Any]] = {}

    def register_builtin_conversions(self) -> None:
        """Register conversions for int, float, bool, str and bytes."""
        from quarry.conversions.builtin import BuiltinConversions

        self.register(BuiltinConversions())

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing quarry_get_conversions

        Raises:
            ValueError: If the plugin registers a type that already has a
                conversion. The plugin is unregistered again.
        """
        self._pm.register(plugin)
        try:
            self._refresh_cache()
        except ValueError:
            self._pm.unregister(plugin)
            raise
        logger.debug("Conversion plugin registered", plugin=type(plugin).__name__, types=len(self._conversions))

    def _refresh_cache(self) -> None:
        """Rebuild the type -> conversion cache from hooks.

        Raises:
            ValueError: If two plugins register the same target type
        """
        new_conversions: dict[type, ValueConversion[Any]] = {}

        for conversions in self._pm.hook.quarry_get_conversions():
            for target_type, conversion in conversions.items():
                if target_type in new_conversions:
                    raise ValueError(
                        f"Duplicate conversion for type '{target_type.__name__}'. Already registered as {new_conversions[target_type]!r}"
                    )
                new_conversions[target_type] = conversion

        self._conversions = new_conversions

    # === Lookup ===

    def types(self) -> list[type]:
        """All types with a registered conversion."""
        return list(self._conversions)

    def get(self, target_type: type[T]) -> ValueConversion[T] | None:
        """Registered conversion for exactly target_type, or None."""
        return self._conversions.get(target_type)

    def conversion_for(self, target_type: type[T]) -> ValueConversion[T]:
        """Conversion producing target_type.

        Enum subclasses without a registered conversion get an
        EnumConversion looking members up by value.

        Raises:
            KeyError: If nothing converts to target_type
        """
        conversion = self._conversions.get(target_type)
        if conversion is not None:
            return conversion
        if isinstance(target_type, type) and issubclass(target_type, Enum):
            return EnumConversion(target_type)  # type: ignore[return-value]
        raise KeyError(f"No conversion registered for type '{target_type.__name__}'")
