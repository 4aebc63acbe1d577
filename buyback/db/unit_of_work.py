"""
Unit of Work pattern for transaction coordination.

Provides a clean way to work with multiple repositories within a single
transaction, and ``run_in_transaction`` for read-check-write sequences that
must be retried when a concurrent writer wins the compare-and-set.
"""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Callable, TypeVar

from sqlalchemy.exc import IntegrityError

from buyback.db.connection import DatabaseConnection
from buyback.db.repositories.base import VersionConflict
from buyback.db.repositories.counter import CounterRepository
from buyback.db.repositories.order import OrderRepository
from buyback.db.repositories.print_job import PrintJobRepository
from buyback.db.repositories.promo import PromoCodeRepository
from buyback.errors import ConcurrencyConflict

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 25

# Upper bound (seconds) of the randomized pause between attempts
_BACKOFF_STEP = 0.005


class UnitOfWork:
    """
    Unit of Work for managing database transactions.

    Coordinates multiple repositories within a single transaction,
    ensuring atomic operations with automatic commit/rollback.

    Usage:
        with UnitOfWork() as uow:
            order, version = uow.orders.read(order_id)
            uow.orders.save(order, version)
            uow.commit()  # Explicit commit

        # Auto-rollback on exception:
        with UnitOfWork() as uow:
            uow.print_jobs.insert(job)
            raise Exception("Something went wrong")
            # Transaction is automatically rolled back
    """

    def __init__(self):
        self._session: Session | None = None
        self._counters: CounterRepository | None = None
        self._orders: OrderRepository | None = None
        self._print_jobs: PrintJobRepository | None = None
        self._promo_codes: PromoCodeRepository | None = None

    def __enter__(self) -> UnitOfWork:
        self._session = DatabaseConnection.get_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        self._close()
        return False  # Don't suppress exceptions

    @property
    def session(self) -> Session:
        """Get current session (raises if not in context)."""
        if self._session is None:
            raise RuntimeError("UnitOfWork must be used within a context manager")
        return self._session

    @property
    def counters(self) -> CounterRepository:
        """Counter repository for this unit of work."""
        if self._counters is None:
            self._counters = CounterRepository(self.session)
        return self._counters

    @property
    def orders(self) -> OrderRepository:
        """Order repository for this unit of work."""
        if self._orders is None:
            self._orders = OrderRepository(self.session)
        return self._orders

    @property
    def print_jobs(self) -> PrintJobRepository:
        """Print job repository for this unit of work."""
        if self._print_jobs is None:
            self._print_jobs = PrintJobRepository(self.session)
        return self._print_jobs

    @property
    def promo_codes(self) -> PromoCodeRepository:
        """Promo code repository for this unit of work."""
        if self._promo_codes is None:
            self._promo_codes = PromoCodeRepository(self.session)
        return self._promo_codes

    def commit(self):
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self):
        """Rollback the current transaction."""
        self.session.rollback()

    def _close(self):
        """Close the session."""
        if self._session is not None:
            self._session.close()
            self._session = None
            self._counters = None
            self._orders = None
            self._print_jobs = None
            self._promo_codes = None


def run_in_transaction(
    work: Callable[[UnitOfWork], T],
    operation: str = "transaction",
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """
    Run ``work`` in a fresh UnitOfWork and commit, retrying on write conflicts.

    ``work`` must do all of its reads inside the unit of work it is given and
    raise VersionConflict when a compare-and-set matches no row. A unique
    constraint violation (two writers inserting the same key) is treated the
    same way. Each attempt starts from a fresh read; domain errors raised by
    ``work`` roll back and propagate immediately.

    Args:
        work: Callable receiving the unit of work; its return value is returned
        operation: Name used in logs and in the ConcurrencyConflict message
        max_attempts: Attempts before giving up

    Raises:
        ConcurrencyConflict: Every attempt lost against a concurrent writer
    """
    for attempt in range(1, max_attempts + 1):
        try:
            with UnitOfWork() as uow:
                result = work(uow)
                uow.commit()
                return result
        except (VersionConflict, IntegrityError) as e:
            logger.debug(
                "%s lost a write conflict (attempt %d/%d): %s",
                operation,
                attempt,
                max_attempts,
                type(e).__name__,
            )
            time.sleep(random.uniform(0, _BACKOFF_STEP * attempt))

    logger.warning(
        "%s gave up after %d conflicting attempts",
        operation,
        max_attempts,
        extra={"json_fields": {"operation": operation, "attempts": max_attempts}},
    )
    raise ConcurrencyConflict(
        f"{operation} kept conflicting with concurrent writers; try again",
        detail={"attempts": max_attempts},
    )
