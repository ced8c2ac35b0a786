"""Conversion registry: pluggy hooks mapping Python types to value conversions."""

from quarry.conversions.builtin import BuiltinConversions
from quarry.conversions.hookspecs import PROJECT_NAME, hookimpl, hookspec
from quarry.conversions.manager import ConversionManager

__all__ = [
    "PROJECT_NAME",
    "BuiltinConversions",
    "ConversionManager",
    "hookimpl",
    "hookspec",
]
