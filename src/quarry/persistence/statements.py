"""INSERT statement construction.

Statements are built with SQLAlchemy Core against a lightweight
TableClause, so records do not need a MetaData-bound Table:

    INSERT [OR <POLICY>] INTO <table> (<columns>) VALUES (...) [RETURNING <selection>]
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import Insert, column, insert, literal_column, table
from sqlalchemy.sql.elements import ColumnClause, ColumnElement
from sqlalchemy.sql.expression import TableClause

from quarry.contracts.enums import ConflictPolicy

# A selection item: "*", a column name, a column object, or any SQL expression
SelectionItem = str | ColumnElement[Any]


def record_table(table_name: str, column_names: Iterable[str]) -> TableClause:
    """Lightweight table with the given columns (duplicates collapsed)."""
    return table(table_name, *(column(name) for name in dict.fromkeys(column_names)))


def conflict_prefix(policy: ConflictPolicy, dialect_name: str) -> str | None:
    """The ``OR <POLICY>`` prefix for an INSERT, or None for ABORT.

    Raises:
        NotImplementedError: If the dialect has no INSERT OR syntax and the
            policy is not ABORT
    """
    if policy == ConflictPolicy.ABORT:
        return None
    if dialect_name != "sqlite":
        raise NotImplementedError(f"Conflict policy {policy.value.upper()} requires SQLite INSERT OR syntax, dialect is {dialect_name!r}")
    return f"OR {policy.value.upper()}"


def returning_columns(selection: Sequence[SelectionItem]) -> list[ColumnElement[Any]]:
    """Normalize a selection for a RETURNING clause.

    Column objects are re-expressed by bare name so that RETURNING never
    renders a table-qualified column.
    """
    columns: list[ColumnElement[Any]] = []
    for item in selection:
        if isinstance(item, str):
            columns.append(literal_column("*") if item == "*" else column(item))
        elif isinstance(item, ColumnClause):
            columns.append(column(item.name))
        else:
            columns.append(item)
    return columns


def build_insert(
    table_name: str,
    values: Mapping[str, Any],
    *,
    policy: ConflictPolicy,
    dialect_name: str,
    selection: Sequence[SelectionItem] = (),
    columns: Iterable[str] = (),
) -> Insert:
    """Build the INSERT for one record.

    Args:
        table_name: Target table
        values: Column -> value container of the record
        policy: Resolved conflict policy
        dialect_name: Name of the executing dialect ("sqlite", ...)
        selection: Returned columns; empty means no RETURNING clause
        columns: Extra column names known for the table

    Returns:
        Executable INSERT statement. A record with no values renders
        ``INSERT INTO <table> DEFAULT VALUES``.
    """
    target = record_table(table_name, [*columns, *values])
    stmt = insert(target)
    if values:
        stmt = stmt.values(dict(values))
    prefix = conflict_prefix(policy, dialect_name)
    if prefix is not None:
        stmt = stmt.prefix_with(prefix)
    if selection:
        stmt = stmt.returning(*returning_columns(selection))
    return stmt
