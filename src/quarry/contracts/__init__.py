"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core or
persistence.

Import pattern:
    from quarry.contracts import DatabaseValue, ConflictPolicy, InsertionSuccess
"""

from quarry.contracts.enums import ConflictPolicy, StorageClass
from quarry.contracts.errors import (
    ColumnNotFoundError,
    ConversionError,
    PersistenceCallbackMisuseError,
    RecordNotFoundError,
    StaleRowError,
)
from quarry.contracts.results import InsertionSuccess, PersistenceSuccess
from quarry.contracts.values import DatabaseValue

__all__ = [
    # enums
    "ConflictPolicy",
    "StorageClass",
    # errors
    "ColumnNotFoundError",
    "ConversionError",
    "PersistenceCallbackMisuseError",
    "RecordNotFoundError",
    "StaleRowError",
    # results
    "InsertionSuccess",
    "PersistenceSuccess",
    # values
    "DatabaseValue",
]
