"""
Print job repository for database operations.
"""

from typing import Any

from sqlalchemy import Table, insert

from buyback.db.repositories.base import BaseRepository, ensure_utc
from buyback.db.tables import print_jobs
from buyback.models.print_job import PrintJob


class PrintJobRepository(BaseRepository[PrintJob]):
    """Repository for bulk kit-print jobs."""

    @property
    def table(self) -> Table:
        return print_jobs

    def _row_to_model(self, row: Any) -> PrintJob:
        """Convert database row to PrintJob model."""
        return PrintJob(
            id=row.id,
            sequence=row.sequence,
            folder=row.folder,
            order_ids=row.order_ids or [],
            created_at=ensure_utc(row.created_at),
        )

    def _model_to_dict(self, model: PrintJob) -> dict:
        """Convert PrintJob model to database dict."""
        return {
            "id": model.id,
            "sequence": model.sequence,
            "folder": model.folder,
            "order_ids": list(model.order_ids),
            "created_at": model.created_at,
        }

    def insert(self, model: PrintJob) -> None:
        """Insert a print job row."""
        self.session.execute(insert(self.table).values(**self._model_to_dict(model)))
