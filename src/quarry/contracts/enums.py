"""Storage classes and conflict policies shared across subsystem boundaries."""

from enum import StrEnum


class StorageClass(StrEnum):
    """Variant tag of a DatabaseValue.

    Mirrors the five SQLite storage classes.
    """

    NULL = "null"
    INT64 = "int64"
    DOUBLE = "double"
    TEXT = "text"
    BLOB = "blob"


class ConflictPolicy(StrEnum):
    """SQL conflict resolution applied to an INSERT.

    Rendered as ``INSERT OR <POLICY>``. ABORT is the engine default and
    renders no prefix at all.

    Values:
        ABORT: Abort the statement, keep prior changes of the transaction
        ROLLBACK: Abort the statement and roll back the transaction
        FAIL: Abort the statement, keep changes already made by it
        IGNORE: Skip the conflicting row, no error
        REPLACE: Delete the conflicting row, then insert
    """

    ABORT = "abort"
    ROLLBACK = "rollback"
    FAIL = "fail"
    IGNORE = "ignore"
    REPLACE = "replace"
