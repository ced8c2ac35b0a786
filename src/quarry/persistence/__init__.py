"""Persistence: records, the insert callback pipeline and statement building."""

from quarry.persistence.pipeline import AroundAction, InsertOutcome, run_insert
from quarry.persistence.records import FetchableRecord, PersistableRecord
from quarry.persistence.statements import SelectionItem, build_insert, conflict_prefix

__all__ = [
    "AroundAction",
    "FetchableRecord",
    "InsertOutcome",
    "PersistableRecord",
    "SelectionItem",
    "build_insert",
    "conflict_prefix",
    "run_insert",
]
