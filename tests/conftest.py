"""
pytest configuration and fixtures.

Loads environment variables from .env file for all tests and provides a
throwaway SQLite database for repository and service tests.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

from buyback.db import DatabaseConnection
from buyback.utils.clock import FixedClock


def pytest_configure(config):
    """Load .env file before running tests"""
    # Find the project root (where .env is located)
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"

    if env_file.exists():
        print(f"Loading environment from {env_file}")
        load_dotenv(env_file)


@pytest.fixture
def database(tmp_path):
    """Fresh file-backed SQLite database with the schema created."""
    DatabaseConnection.close()
    DatabaseConnection.initialize(
        database_url=f"sqlite:///{tmp_path / 'buyback.db'}",
        pool_size=20,
        max_overflow=10,
    )
    DatabaseConnection.create_schema()
    yield DatabaseConnection
    DatabaseConnection.close()


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a known instant."""
    return FixedClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))
