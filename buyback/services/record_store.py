"""
Order record store.

Every order mutation goes through ``OrderRecordStore``: the primary record
and its activity log entries are committed together under a version
compare-and-set, then the fresh record is copied into the customer's mirror.
The mirror is best-effort; the primary record is the source of truth.
"""

import logging
from typing import Any, Callable, Optional, Union
from uuid import uuid4

import pydantic
from pydantic import BaseModel, Field
from pydantic_core import to_jsonable_python

from buyback.db.repositories.base import VersionConflict
from buyback.db.unit_of_work import UnitOfWork, run_in_transaction
from buyback.errors import NotFound, StateConflict, ValidationError
from buyback.models.order import ActivityLogEntry, Order
from buyback.models.status import format_status_label
from buyback.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

# Partial fields, or a function computing them from the freshly read order
FieldsOrFactory = Union[dict[str, Any], Callable[[Order], dict[str, Any]]]


class ApplyOptions(BaseModel):
    """Options for OrderRecordStore.apply()"""

    log_entries: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Extra activity entries (id, type, message, metadata, at optional)",
    )
    auto_log_status: bool = Field(
        default=True, description="Log 'Status changed to ...' on status changes"
    )
    skip_status_timestamp: bool = Field(
        default=False, description="Do not stamp last_status_update_at"
    )


class OrderRecordStore:
    """Transactional writes of order records, their activity log and mirror."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    def get(self, order_id: str) -> Order:
        """
        Get an order with its activity log.

        Raises:
            NotFound: Unknown order ID
        """
        with UnitOfWork() as uow:
            order = uow.orders.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def create(self, order: Order) -> Order:
        """
        Write a new order to the primary store and the customer's mirror.

        Raises:
            StateConflict: An order with the same ID already exists
        """
        now = self.clock.now()
        order = order.model_copy(update={"created_at": now, "updated_at": now})
        created = ActivityLogEntry(
            id=str(uuid4()),
            type="created",
            message="Order created",
            metadata={"status": order.status},
            at=now,
        )

        def work(uow: UnitOfWork) -> None:
            if uow.orders.read(order.id) is not None:
                raise StateConflict(f"Order {order.id} already exists")
            uow.orders.insert(order)
            uow.orders.append_activity(order.id, [created])

        run_in_transaction(work, operation=f"create order {order.id}")
        logger.info(
            "Order %s created with status %s",
            order.id,
            order.status,
            extra={"json_fields": {"order_id": order.id, "status": order.status}},
        )

        fresh = self.get(order.id)
        self._write_mirror(fresh)
        return fresh

    def apply(
        self,
        order_id: str,
        fields: FieldsOrFactory,
        options: Optional[ApplyOptions] = None,
    ) -> Order:
        """
        Apply a partial update to an order.

        ``fields`` may be a callable; it is then evaluated against the order
        as read inside each attempt, so a check-then-write on the current
        state stays atomic. It may raise a domain error to abort the update.
        Fields set to None are written as explicit nulls.

        Args:
            order_id: Order to update
            fields: Partial fields, or a function of the current order returning them
            options: Logging and timestamp options

        Returns:
            The order as re-read after the commit

        Raises:
            NotFound: Unknown order ID
            ValidationError: The merged record is not a valid order
            ConcurrencyConflict: Concurrent writers kept winning
        """
        options = options or ApplyOptions()
        transitions: list[tuple[str, str]] = []

        def work(uow: UnitOfWork) -> None:
            transitions.clear()
            found = uow.orders.read(order_id)
            if found is None:
                raise NotFound(f"Order {order_id} not found")
            current, version = found

            partial = fields(current) if callable(fields) else dict(fields)
            now = self.clock.now()

            updates = dict(partial)
            updates["updated_at"] = now
            status_changed = (
                "status" in partial and partial["status"] != current.status
            )
            if "status" in partial and not options.skip_status_timestamp:
                updates.setdefault("last_status_update_at", now)

            document = current.model_dump(mode="json", exclude={"activity_log"})
            document.update(to_jsonable_python(updates))
            try:
                updated = Order.model_validate(document)
            except pydantic.ValidationError as e:
                raise ValidationError(
                    f"Invalid update for order {order_id}",
                    detail=e.errors(include_url=False, include_context=False),
                ) from e

            entries: list[ActivityLogEntry] = []
            if status_changed and options.auto_log_status:
                entries.append(
                    ActivityLogEntry(
                        id=str(uuid4()),
                        type="status",
                        message=f"Status changed to {format_status_label(updated.status)}",
                        metadata={"status": updated.status},
                        at=now,
                    )
                )
            entries.extend(self._normalize_entry(raw, now) for raw in options.log_entries)

            if not uow.orders.save(updated, version):
                raise VersionConflict(order_id)
            uow.orders.append_activity(order_id, entries)

            if status_changed:
                transitions.append((current.status, updated.status))

        run_in_transaction(work, operation=f"update order {order_id}")

        for previous, status in transitions:
            logger.info(
                "Order %s status %s -> %s",
                order_id,
                previous,
                status,
                extra={
                    "json_fields": {
                        "order_id": order_id,
                        "previous_status": previous,
                        "status": status,
                    }
                },
            )

        fresh = self.get(order_id)
        self._write_mirror(fresh)
        return fresh

    def _normalize_entry(self, raw: dict[str, Any], now) -> ActivityLogEntry:
        entry = dict(raw)
        entry["id"] = entry.get("id") or str(uuid4())
        entry["type"] = entry.get("type") or "update"
        entry["message"] = entry.get("message") or ""
        entry["at"] = entry.get("at") or now
        return ActivityLogEntry.model_validate(entry)

    def _write_mirror(self, order: Order):
        """Copy the record into the customer's mirror. Failures are only logged."""
        if not order.customer_id:
            return

        try:
            with UnitOfWork() as uow:
                uow.orders.upsert_mirror(order)
                uow.commit()
        except Exception as e:
            logger.warning(
                "Failed to mirror order %s for customer %s: %s",
                order.id,
                order.customer_id,
                e,
                extra={
                    "json_fields": {
                        "order_id": order.id,
                        "customer_id": order.customer_id,
                    }
                },
            )
