"""
Counter repository for database operations.

Counters back order numbers, print batch numbers and rotating indices.
All increments go through compare_and_set() on the version column.
"""

from typing import Any

from sqlalchemy import Table

from buyback.db.repositories.base import BaseRepository, ensure_utc
from buyback.db.tables import counters
from buyback.models.counter import Counter


class CounterRepository(BaseRepository[Counter]):
    """Repository for named counters."""

    @property
    def table(self) -> Table:
        return counters

    def _row_to_model(self, row: Any) -> Counter:
        """Convert database row to Counter model."""
        return Counter(
            id=row.id,
            value=row.value,
            version=row.version,
            updated_at=ensure_utc(row.updated_at),
        )

    def _model_to_dict(self, model: Counter) -> dict:
        """Convert Counter model to database dict."""
        return {
            "id": model.id,
            "value": model.value,
            "version": model.version,
            "updated_at": model.updated_at,
        }
