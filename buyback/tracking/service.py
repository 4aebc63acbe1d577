"""
Tracking refresh orchestration.

Loads an order, picks the leg to follow, fetches and classifies carrier
tracking, and commits the resulting transition through the record store.
Nothing is written unless the whole chain succeeds.
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional

from buyback import config
from buyback.errors import CredentialsMissing
from buyback.models.order import KitTrackingStatus, Order
from buyback.models.status import Direction, OrderStatus, is_status_past_received
from buyback.models.tracking import RefreshResult, TrackingSnapshot
from buyback.notifications import LoggingNotifier, Notifier, dispatch, plan_notifications
from buyback.services.record_store import OrderRecordStore
from buyback.tracking.classifier import classify_tracking
from buyback.tracking.direction import (
    resolve_carrier_code,
    resolve_direction,
    tracking_number_for,
)
from buyback.tracking.providers import TrackingFetcher
from buyback.tracking.transitions import build_tracking_update
from buyback.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SOURCE = "admin_manual"


def _refresh_message(direction: Direction, delivered: bool, status: Optional[str]) -> str:
    if direction == Direction.INBOUND:
        if delivered:
            if status == OrderStatus.DELIVERED_TO_US:
                return "Inbound kit marked as delivered to us."
            return "Inbound device marked as delivered."
        return "Inbound tracking status refreshed."
    return "Kit marked as delivered." if delivered else "Kit tracking status refreshed."


class TrackingService:
    """Refreshes carrier tracking for one order at a time."""

    def __init__(
        self,
        fetcher: Optional[TrackingFetcher] = None,
        record_store: Optional[OrderRecordStore] = None,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        min_refresh_interval_seconds: int = config.TRACKING_REFRESH_MIN_INTERVAL_SECONDS,
        default_carrier_code: str = config.DEFAULT_CARRIER_CODE,
    ):
        self.clock = clock or SystemClock()
        self.fetcher = fetcher or TrackingFetcher.from_config()
        self.record_store = record_store or OrderRecordStore(clock=self.clock)
        self.notifier = notifier or LoggingNotifier()
        self.min_refresh_interval_seconds = min_refresh_interval_seconds
        self.default_carrier_code = default_carrier_code

    def cooldown_message(self, order: Order) -> Optional[str]:
        """Why a non-forced refresh should wait, or None when it may proceed."""
        if not self.min_refresh_interval_seconds:
            return None

        latest: Optional[datetime] = (
            order.kit_tracking_last_refreshed_at or order.last_tracking_refresh_at
        )
        if latest is None:
            return None

        elapsed = (self.clock.now() - latest).total_seconds()
        if elapsed >= self.min_refresh_interval_seconds:
            return None

        minutes = max(1, math.ceil((self.min_refresh_interval_seconds - elapsed) / 60))
        return (
            "Tracking was refreshed recently. "
            f"Try again in about {minutes} minute{'' if minutes == 1 else 's'}."
        )

    def refresh(
        self,
        order_id: str,
        *,
        force: bool = False,
        source: str = DEFAULT_REFRESH_SOURCE,
    ) -> RefreshResult:
        """
        Refresh tracking for an order and apply the resulting transition.

        Args:
            order_id: Order to refresh
            force: Ignore the refresh cooldown
            source: Recorded as last_tracking_refresh_source

        Returns:
            RefreshResult (``skipped`` set when nothing was fetched)

        Raises:
            NotFound: Unknown order
            NoTrackingNumber: The order has no tracking number
            CredentialsMissing: No tracking provider configured
            ProviderTransient: Provider failures (after fallback)
        """
        order = self.record_store.get(order_id)
        direction = resolve_direction(order)

        if is_status_past_received(order.status):
            return RefreshResult(
                order_id=order_id,
                status=order.status,
                previous_status=order.status,
                direction=direction,
                skipped=True,
                reason="Order already received/completed. Tracking refresh skipped.",
            )

        if not force:
            reason = self.cooldown_message(order)
            if reason:
                return RefreshResult(
                    order_id=order_id,
                    status=order.status,
                    previous_status=order.status,
                    direction=direction,
                    skipped=True,
                    reason=reason,
                )

        if not self.fetcher.is_configured:
            raise CredentialsMissing("Tracking API credentials are not configured.")

        tracking_number = tracking_number_for(order, direction)
        carrier_code = resolve_carrier_code(
            order, direction, default=self.default_carrier_code
        )
        logger.info(
            "Refreshing %s tracking for order %s (%s via %s)",
            direction,
            order_id,
            tracking_number,
            carrier_code,
        )
        snapshot = classify_tracking(self.fetcher.fetch(tracking_number, carrier_code))
        refresh_source = (source or DEFAULT_REFRESH_SOURCE).strip().lower()

        def fields(current: Order) -> dict[str, Any]:
            return self._refresh_fields(
                current, snapshot, direction, tracking_number, carrier_code, refresh_source
            )

        updated = self.record_store.apply(order_id, fields)
        dispatch(self.notifier, plan_notifications(order, updated))

        tracking = updated.kit_tracking_status or KitTrackingStatus()
        return RefreshResult(
            order_id=order_id,
            status=updated.status,
            previous_status=order.status,
            delivered=snapshot.delivered,
            direction=direction,
            tracking=tracking,
            message=_refresh_message(direction, snapshot.delivered, updated.status),
        )

    def _refresh_fields(
        self,
        order: Order,
        snapshot: TrackingSnapshot,
        direction: Direction,
        tracking_number: Optional[str],
        carrier_code: str,
        source: str,
    ) -> dict[str, Any]:
        now = self.clock.now()
        update = build_tracking_update(
            order, snapshot, direction, tracking_number, carrier_code, now
        )
        fields = {
            **update.payload,
            "kit_tracking_last_refreshed_at": now,
            "last_tracking_refresh_at": now,
            "last_tracking_refresh_source": source,
        }
        if direction == Direction.INBOUND:
            fields["inbound_tracking_last_refreshed_at"] = now
        return fields
