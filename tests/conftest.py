# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings
from sqlalchemy import Column, Integer, MetaData, String, Table, text

from quarry.core.database import Database

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Database Fixtures
# =============================================================================


def player_metadata() -> MetaData:
    """Schema shared by the row, cursor and persistence tests.

    player.score defaults to 1000 so RETURNING has something the record
    did not supply itself.
    """
    metadata = MetaData()
    Table(
        "player",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String, nullable=False, unique=True),
        Column("score", Integer, nullable=False, server_default=text("1000")),
    )
    return metadata


@pytest.fixture
def metadata() -> MetaData:
    return player_metadata()


@pytest.fixture
def db(metadata: MetaData) -> Iterator[Database]:
    """Fresh in-memory database with the player table."""
    database = Database.in_memory(metadata=metadata)
    yield database
    database.close()
