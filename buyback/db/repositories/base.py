"""
Base repository with common operations.

Provides generic database operations that can be inherited by specific
repositories, plus the compare-and-set primitive every transactional
mutation is built on.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Table, select, update
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT", bound=BaseModel)


class VersionConflict(Exception):
    """A compare-and-set lost against a concurrent writer."""


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from databases without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class BaseRepository(ABC, Generic[ModelT]):
    """
    Base repository with common operations.

    Subclasses must implement:
    - table property: Return the SQLAlchemy Table
    - key_column property: Primary key column name
    - _row_to_model: Convert database row to Pydantic model
    - _model_to_dict: Convert Pydantic model to database dict
    """

    key_column = "id"

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def table(self) -> Table:
        """SQLAlchemy table for this repository."""
        pass

    @abstractmethod
    def _row_to_model(self, row: Any) -> ModelT:
        """Convert database row to Pydantic model."""
        pass

    @abstractmethod
    def _model_to_dict(self, model: ModelT) -> dict:
        """Convert Pydantic model to database dict."""
        pass

    @property
    def _key(self):
        return self.table.c[self.key_column]

    def get_by_id(self, id: str) -> ModelT | None:
        """
        Get entity by primary key.

        Args:
            id: Primary key value

        Returns:
            Pydantic model or None if not found
        """
        stmt = select(self.table).where(self._key == id)
        row = self.session.execute(stmt).first()

        if row is None:
            return None

        return self._row_to_model(row)

    def create(self, model: ModelT) -> ModelT:
        """
        Create new entity.

        Args:
            model: Pydantic model to create

        Returns:
            Created model with database-generated fields
        """
        data = self._model_to_dict(model)
        stmt = self.table.insert().values(**data).returning(self.table)
        row = self.session.execute(stmt).first()
        return self._row_to_model(row)

    def compare_and_set(self, id: str, expected_version: int, **kwargs) -> bool:
        """
        Update entity only if its version is still ``expected_version``.

        The version is bumped as part of the same statement, so of two
        writers that read the same version exactly one succeeds.

        Args:
            id: Primary key value
            expected_version: Version observed when the entity was read
            **kwargs: Fields to update

        Returns:
            True if the write was applied, False if another writer got there first
        """
        stmt = (
            update(self.table)
            .where(self._key == id, self.table.c.version == expected_version)
            .values(version=expected_version + 1, **kwargs)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1
