"""Core infrastructure: rows, cursors, conversions, database, configuration, logging."""

from quarry.core.config import (
    DatabaseSettings,
    LoggingSettings,
    QuarrySettings,
    load_settings,
)
from quarry.core.conversion import (
    BLOB,
    BOOLEAN,
    INTEGER,
    REAL,
    TEXT,
    EnumConversion,
    ValueConversion,
)
from quarry.core.cursor import RowCursor
from quarry.core.database import Database
from quarry.core.logging import configure_from_settings, configure_logging, get_logger
from quarry.core.row import ColumnRef, Row, ScopesTree, rows_equal_with_scopes

__all__ = [
    # config
    "DatabaseSettings",
    "LoggingSettings",
    "QuarrySettings",
    "load_settings",
    # conversion
    "BLOB",
    "BOOLEAN",
    "EnumConversion",
    "INTEGER",
    "REAL",
    "TEXT",
    "ValueConversion",
    # cursor
    "RowCursor",
    # database
    "Database",
    # logging
    "configure_from_settings",
    "configure_logging",
    "get_logger",
    # row
    "ColumnRef",
    "Row",
    "ScopesTree",
    "rows_equal_with_scopes",
]
