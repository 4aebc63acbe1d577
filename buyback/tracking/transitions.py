"""
Order status transitions driven by carrier tracking.

``build_tracking_update`` decides, from a classified tracking snapshot,
which fields of the order should change. It does not read the clock or
touch storage; the caller passes ``now`` and commits the payload.
"""

from datetime import datetime
from typing import Any, Optional

from buyback.models.order import KitTrackingStatus, Order
from buyback.models.status import (
    Direction,
    OrderStatus,
    canonical_status,
    is_legacy_alias,
)
from buyback.models.tracking import TrackingSnapshot, TrackingUpdate

# Inbound statuses a quiet tracking response must not roll back
INBOUND_LOCKED_STATUSES = frozenset(
    {
        OrderStatus.PHONE_ON_THE_WAY,
        OrderStatus.DELIVERED_TO_US,
        OrderStatus.RECEIVED,
        OrderStatus.COMPLETED,
    }
)


def inbound_baseline_status(order: Order) -> OrderStatus:
    """Status an inbound leg rests at before the carrier reports movement."""
    if order.is_kit_order:
        if order.kit_delivered_at:
            return OrderStatus.KIT_DELIVERED
        return OrderStatus.KIT_SENT
    return OrderStatus.LABEL_GENERATED


def build_tracking_update(
    order: Order,
    snapshot: TrackingSnapshot,
    direction: Direction,
    tracking_number: Optional[str],
    carrier_code: Optional[str],
    now: datetime,
) -> TrackingUpdate:
    """
    Compute the order fields a tracking snapshot implies.

    Args:
        order: Order as currently stored
        snapshot: Classified provider response
        direction: Leg the snapshot belongs to
        tracking_number: Tracking number that was queried
        carrier_code: Carrier that was queried
        now: Timestamp for status and milestone fields

    Returns:
        TrackingUpdate whose payload always carries ``kit_tracking_status``
    """
    payload: dict[str, Any] = {
        "kit_tracking_status": KitTrackingStatus(
            status_code=snapshot.status_code,
            status_description=snapshot.status_description,
            carrier_code=carrier_code,
            last_updated=snapshot.last_updated,
            estimated_delivery=snapshot.estimated_delivery,
            tracking_number=tracking_number,
            direction=direction,
        ).model_dump(mode="json"),
    }

    current = canonical_status(order.status)
    if is_legacy_alias(order.status):
        payload["status"] = current.value

    def set_status(status: OrderStatus):
        payload["status"] = status.value
        payload["last_status_update_at"] = now

    def stamp_once(field: str):
        if getattr(order, field, None) is None:
            payload[field] = now

    if direction == Direction.OUTBOUND:
        if snapshot.delivered:
            set_status(OrderStatus.KIT_DELIVERED)
            stamp_once("kit_delivered_at")
        elif snapshot.has_movement:
            set_status(OrderStatus.KIT_ON_THE_WAY_TO_CUSTOMER)
            stamp_once("kit_sent_at")
        elif current != OrderStatus.KIT_SENT:
            set_status(OrderStatus.KIT_SENT)
            stamp_once("kit_sent_at")
    else:
        if snapshot.delivered:
            set_status(OrderStatus.DELIVERED_TO_US)
            if order.is_kit_order:
                stamp_once("kit_delivered_to_us_at")
            else:
                stamp_once("received_at")
                payload["auto_received"] = True
        elif snapshot.has_movement:
            set_status(OrderStatus.PHONE_ON_THE_WAY)
        else:
            baseline = inbound_baseline_status(order)
            if current != baseline and current not in INBOUND_LOCKED_STATUSES:
                set_status(baseline)

    return TrackingUpdate(
        payload=payload,
        delivered=snapshot.delivered,
        direction=direction,
    )
