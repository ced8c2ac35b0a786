"""Outcomes produced by the persistence pipeline.

These types answer: "What did a write produce?"

InsertionSuccess is produced exactly once per successful INSERT.
PersistenceSuccess wraps it so the save-level hooks do not need to know
whether the underlying write was an insert.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class InsertionSuccess:
    """Report of a successful INSERT.

    Attributes:
        table_name: Table written to
        row_id: Last inserted row id as reported by the driver. Under the
            IGNORE conflict policy with nothing inserted, drivers report
            a stale or missing id; treat it as informative only.
        values: The persisted column -> value container (read-only)
    """

    table_name: str
    row_id: int | None
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the container so the success value has no shared mutable state
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))


@dataclass(frozen=True)
class PersistenceSuccess:
    """Write-agnostic success value handed to around_save and did_save."""

    inserted: InsertionSuccess

    @classmethod
    def from_insertion(cls, inserted: InsertionSuccess) -> "PersistenceSuccess":
        return cls(inserted=inserted)

    @property
    def table_name(self) -> str:
        return self.inserted.table_name

    @property
    def row_id(self) -> int | None:
        return self.inserted.row_id

    @property
    def values(self) -> Mapping[str, Any]:
        return self.inserted.values
