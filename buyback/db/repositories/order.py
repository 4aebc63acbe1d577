"""
Order repository for database operations.

Orders are stored as schemaless documents in ``orders.data``; the columns
next to it (status, customer_id, version, timestamps) are the queryable
and concurrency-relevant projections of that document. Activity log
entries live in ``order_activity`` and are only ever appended.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, insert, select, update

from buyback.db.repositories.base import BaseRepository, ensure_utc
from buyback.db.tables import customer_orders, order_activity, orders
from buyback.models.order import ActivityLogEntry, Order

# Stored in order_activity, not in the document
_DOCUMENT_EXCLUDE = {"activity_log"}


class OrderRepository(BaseRepository[Order]):
    """Repository for Order documents, their activity log and the customer mirror."""

    @property
    def table(self) -> Table:
        return orders

    def _row_to_model(self, row: Any) -> Order:
        """Convert database row to Order model."""
        data = dict(row.data or {})
        data.update(
            id=row.id,
            customer_id=row.customer_id,
            status=row.status,
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )
        data.pop("activity_log", None)
        return Order.model_validate(data)

    def _model_to_dict(self, model: Order) -> dict:
        """Convert Order model to database dict."""
        return {
            "id": model.id,
            "customer_id": model.customer_id,
            "status": model.status,
            "data": model.model_dump(mode="json", exclude=_DOCUMENT_EXCLUDE),
            "version": 0,
            "created_at": model.created_at,
            "updated_at": model.updated_at,
        }

    def insert(self, model: Order) -> None:
        """Insert a new order document (fails on a duplicate ID)."""
        self.session.execute(insert(self.table).values(**self._model_to_dict(model)))

    def read(self, order_id: str) -> tuple[Order, int] | None:
        """
        Read an order together with its current version.

        The activity log is not loaded; use get() for the full record.

        Returns:
            (order, version) or None if not found
        """
        stmt = select(self.table).where(self.table.c.id == order_id)
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return self._row_to_model(row), row.version

    def get(self, order_id: str) -> Order | None:
        """Get an order with its activity log assembled in insertion order."""
        order = self.get_by_id(order_id)
        if order is None:
            return None
        order.activity_log = self.list_activity(order_id)
        return order

    def save(self, model: Order, expected_version: int) -> bool:
        """
        Write the full document if nobody else has written since it was read.

        Returns:
            False when the version moved on (caller should re-read and retry)
        """
        data = self._model_to_dict(model)
        return self.compare_and_set(
            model.id,
            expected_version,
            customer_id=data["customer_id"],
            status=data["status"],
            data=data["data"],
            updated_at=data["updated_at"],
        )

    # =========================================================================
    # Activity log
    # =========================================================================

    def append_activity(self, order_id: str, entries: list[ActivityLogEntry]):
        """Append activity entries. Entries are never updated afterwards."""
        if not entries:
            return
        self.session.execute(
            insert(order_activity),
            [
                {
                    "id": entry.id,
                    "order_id": order_id,
                    "type": entry.type,
                    "message": entry.message,
                    "metadata": entry.metadata,
                    "at": entry.at,
                }
                for entry in entries
            ],
        )

    def list_activity(self, order_id: str) -> list[ActivityLogEntry]:
        """List activity entries for an order, oldest first."""
        stmt = (
            select(order_activity)
            .where(order_activity.c.order_id == order_id)
            .order_by(order_activity.c.seq)
        )
        return [
            ActivityLogEntry(
                id=row.id,
                type=row.type,
                message=row.message or "",
                metadata=row.metadata,
                at=ensure_utc(row.at),
            )
            for row in self.session.execute(stmt).all()
        ]

    # =========================================================================
    # Per-customer mirror
    # =========================================================================

    def upsert_mirror(self, model: Order) -> None:
        """
        Write the full record (activity log included) into the customer's copy.

        Requires ``model.customer_id``.
        """
        if not model.customer_id:
            raise ValueError("Order has no customer_id to mirror under")

        values = {
            "data": model.model_dump(mode="json"),
            "updated_at": datetime.now(timezone.utc),
        }
        stmt = (
            update(customer_orders)
            .where(
                customer_orders.c.customer_id == model.customer_id,
                customer_orders.c.order_id == model.id,
            )
            .values(**values)
        )
        if self.session.execute(stmt).rowcount == 0:
            self.session.execute(
                insert(customer_orders).values(
                    customer_id=model.customer_id, order_id=model.id, **values
                )
            )

    def get_mirror(self, customer_id: str, order_id: str) -> Order | None:
        """Get the customer's copy of an order."""
        stmt = select(customer_orders).where(
            customer_orders.c.customer_id == customer_id,
            customer_orders.c.order_id == order_id,
        )
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return Order.model_validate(row.data)
