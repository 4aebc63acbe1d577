"""
Atomic sequence allocation.

Counters, promo code allowances and print batch numbers are all
read-check-write sequences on a single row. Each runs inside
``run_in_transaction`` and writes with a version compare-and-set, so
concurrent callers never observe or hand out the same value twice.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from buyback import config
from buyback.db.repositories.base import VersionConflict
from buyback.db.unit_of_work import UnitOfWork, run_in_transaction
from buyback.errors import NotFound, PromoExhausted, PromoIneligible, ValidationError
from buyback.models.counter import Counter
from buyback.models.order import ShippingInfo
from buyback.models.print_job import PrintBatch, PrintJob
from buyback.models.promo import (
    PromoCode,
    PromoCodeSnapshot,
    PromoRedemptionResult,
    Redemption,
)
from buyback.models.status import ShippingPreference
from buyback.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

ORDER_COUNTER = "orders"
PRINT_BATCH_COUNTER = "bulk_print"


def normalize_promo_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _promo_terms(promo: PromoCode) -> tuple[Decimal, int]:
    """Bonus amount and original allowance, with their defaults applied."""
    bonus = promo.bonus_amount
    if bonus is None or bonus <= 0:
        bonus = Decimal(config.DEFAULT_PROMO_BONUS_AMOUNT)
    max_uses = promo.max_uses if promo.max_uses and promo.max_uses > 0 else None
    return bonus, max_uses if max_uses is not None else promo.uses_left


class SequenceAllocator:
    """Allocates counter values, promo redemptions and print batches."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    # =========================================================================
    # Counters
    # =========================================================================

    def _advance(
        self,
        uow: UnitOfWork,
        counter_id: str,
        count: int = 1,
        seed: int = 0,
        ring_size: Optional[int] = None,
    ) -> list[int]:
        """Advance a counter by ``count`` steps inside ``uow``; return the new values."""
        counter = uow.counters.get_by_id(counter_id)
        if counter is not None:
            current = counter.value
        elif ring_size is None:
            current = seed
        else:
            current = -1

        values = []
        for _ in range(count):
            current = current + 1 if ring_size is None else (current + 1) % ring_size
            values.append(current)

        now = self.clock.now()
        if counter is None:
            # A concurrent first insert fails on the primary key and is retried
            uow.counters.create(Counter(id=counter_id, value=current, updated_at=now))
        elif not uow.counters.compare_and_set(
            counter_id, counter.version, value=current, updated_at=now
        ):
            raise VersionConflict(counter_id)

        return values

    def next_sequence(
        self, counter_id: str, *, seed: int = 0, ring_size: Optional[int] = None
    ) -> int:
        """
        Allocate the next value of a named counter.

        A counter that does not exist yet starts after ``seed``. With
        ``ring_size`` the counter wraps and starts at 0.

        Raises:
            ValidationError: ring_size is not positive
            ConcurrencyConflict: Retries exhausted
        """
        if ring_size is not None and ring_size <= 0:
            raise ValidationError("ring_size must be positive")

        (value,) = run_in_transaction(
            lambda uow: self._advance(uow, counter_id, seed=seed, ring_size=ring_size),
            operation=f"counter {counter_id}",
        )
        logger.debug("Counter %s allocated %d", counter_id, value)
        return value

    def next_order_number(self) -> str:
        """Allocate the next order number, e.g. ``SHC-30000``."""
        n = self.next_sequence(ORDER_COUNTER, seed=config.ORDER_NUMBER_SEED)
        order_number = f"{config.ORDER_NUMBER_PREFIX}-{n:05d}"
        logger.info("Allocated order number %s", order_number)
        return order_number

    def reserve_ring_indices(
        self, counter_id: str, count: int, ring_size: int
    ) -> list[int]:
        """
        Reserve ``count`` consecutive indices of a rotating counter at once.

        Used to spread consecutive work across a fixed pool (e.g. profiles).
        """
        if count <= 0:
            raise ValidationError("count must be positive")
        if ring_size <= 0:
            raise ValidationError("ring_size must be positive")

        return run_in_transaction(
            lambda uow: self._advance(
                uow, counter_id, count=count, ring_size=ring_size
            ),
            operation=f"counter {counter_id}",
        )

    # =========================================================================
    # Promo codes
    # =========================================================================

    def redeem_promo(
        self,
        code: str,
        order_id: str,
        shipping_preference: Optional[str],
        customer: Optional[ShippingInfo] = None,
    ) -> PromoRedemptionResult:
        """
        Redeem a promo code for an order.

        Redeeming the same code again for the same order returns the original
        grant without using up another redemption.

        Raises:
            ValidationError: Empty code
            NotFound: Unknown code
            PromoExhausted: No redemptions left
            PromoIneligible: Code requires the email label option
            ConcurrencyConflict: Retries exhausted
        """
        normalized = normalize_promo_code(code)
        if not normalized:
            raise ValidationError("Promo code is required")

        def work(uow: UnitOfWork) -> PromoRedemptionResult:
            promo = uow.promo_codes.get_by_id(normalized)
            if promo is None:
                raise NotFound(f"Invalid promo code {normalized}")
            bonus, max_uses = _promo_terms(promo)

            existing = uow.promo_codes.get_redemption(normalized, order_id)
            if existing is not None:
                return PromoRedemptionResult(
                    code=normalized,
                    order_id=order_id,
                    amount=existing.bonus_amount,
                    uses_left=promo.uses_left,
                    max_uses=max_uses,
                    requires_email_label=promo.requires_email_label,
                    replayed=True,
                )

            if promo.uses_left <= 0:
                raise PromoExhausted("Promo code has been fully redeemed.")

            preference = (shipping_preference or "").strip().lower()
            if (
                promo.requires_email_label
                and preference != ShippingPreference.EMAIL_LABEL.value.lower()
            ):
                raise PromoIneligible(
                    "This promo code is only valid with the email label option."
                )

            now = self.clock.now()
            uses_left = promo.uses_left - 1
            if not uow.promo_codes.compare_and_set(
                normalized,
                promo.version,
                uses_left=uses_left,
                last_redeemed_at=now,
                updated_at=now,
            ):
                raise VersionConflict(normalized)

            uow.promo_codes.add_redemption(
                Redemption(
                    code=normalized,
                    order_id=order_id,
                    bonus_amount=bonus,
                    shipping_preference=shipping_preference,
                    customer_name=customer.full_name if customer else None,
                    customer_email=customer.email if customer else None,
                    created_at=now,
                )
            )
            return PromoRedemptionResult(
                code=normalized,
                order_id=order_id,
                amount=bonus,
                uses_left=uses_left,
                max_uses=max_uses,
                requires_email_label=promo.requires_email_label,
            )

        result = run_in_transaction(work, operation=f"promo {normalized}")
        logger.info(
            "Promo %s %s for order %s (%d uses left)",
            normalized,
            "replayed" if result.replayed else "redeemed",
            order_id,
            result.uses_left,
            extra={
                "json_fields": {
                    "promo_code": normalized,
                    "order_id": order_id,
                    "uses_left": result.uses_left,
                }
            },
        )
        return result

    def promo_snapshot(self, code: str) -> PromoCodeSnapshot:
        """
        Usage and eligibility of a promo code.

        Raises:
            ValidationError: Empty code
            NotFound: Unknown code
        """
        normalized = normalize_promo_code(code)
        if not normalized:
            raise ValidationError("Promo code is required")

        with UnitOfWork() as uow:
            promo = uow.promo_codes.get_by_id(normalized)
        if promo is None:
            raise NotFound("Promo code not found.")

        bonus, max_uses = _promo_terms(promo)
        return PromoCodeSnapshot(
            code=normalized,
            uses_left=promo.uses_left,
            max_uses=max_uses,
            bonus_amount=bonus,
            requires_email_label=promo.requires_email_label,
            description=promo.description,
        )

    # =========================================================================
    # Print batches
    # =========================================================================

    def reserve_print_batch(self, order_ids: list[str]) -> PrintBatch:
        """
        Reserve the next bulk-print batch number and record its job.

        Raises:
            ValidationError: No order IDs
        """
        cleaned = [str(order_id).strip() for order_id in order_ids or []]
        cleaned = [order_id for order_id in cleaned if order_id]
        if not cleaned:
            raise ValidationError("At least one order ID must be provided.")

        def work(uow: UnitOfWork) -> PrintJob:
            (sequence,) = self._advance(uow, PRINT_BATCH_COUNTER)
            job = PrintJob(
                id=str(uuid4()),
                sequence=sequence,
                folder=f"bulk-print-{sequence}",
                order_ids=cleaned,
                created_at=self.clock.now(),
            )
            uow.print_jobs.insert(job)
            return job

        job = run_in_transaction(work, operation="print batch")
        logger.info(
            "Reserved print batch %s for %d orders",
            job.folder,
            len(job.order_ids),
            extra={"json_fields": {"job_id": job.id, "sequence": job.sequence}},
        )
        return PrintBatch(sequence=job.sequence, folder_name=job.folder, job_id=job.id)
