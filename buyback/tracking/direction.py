"""
Direction resolution for tracking refreshes.

An order can carry two tracking numbers: the kit sent to the customer
(outbound) and the device coming back (inbound). These helpers decide which
leg a refresh should follow and which carrier to ask.
"""

from typing import Optional

from buyback.config import DEFAULT_CARRIER_CODE
from buyback.errors import NoTrackingNumber
from buyback.models.order import LabelRecord, Order
from buyback.models.status import Direction, OrderStatus, canonical_status

# Once an order reaches one of these, the inbound leg is the one worth tracking
INBOUND_TRACKING_STATUSES = frozenset(
    {
        OrderStatus.KIT_DELIVERED,
        OrderStatus.KIT_ON_THE_WAY_TO_CUSTOMER,
        OrderStatus.KIT_ON_THE_WAY_TO_US,
        OrderStatus.DELIVERED_TO_US,
        OrderStatus.LABEL_GENERATED,
        OrderStatus.EMAILED,
        OrderStatus.RECEIVED,
        OrderStatus.PHONE_ON_THE_WAY,
        OrderStatus.COMPLETED,
        OrderStatus.RE_OFFERED_PENDING,
        OrderStatus.RE_OFFERED_ACCEPTED,
        OrderStatus.RE_OFFERED_DECLINED,
        OrderStatus.RE_OFFERED_AUTO_ACCEPTED,
        OrderStatus.RETURN_LABEL_GENERATED,
        OrderStatus.REQUOTE_ACCEPTED,
    }
)

_LEG_LABEL_SLOTS = {
    Direction.OUTBOUND: ("outbound", "kit"),
    Direction.INBOUND: ("inbound", "customer", "return"),
}


def _clean(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def resolve_direction(order: Order) -> Direction:
    """
    Pick the leg to refresh.

    Raises:
        NoTrackingNumber: The order has neither tracking number
    """
    has_outbound = bool(_clean(order.outbound_tracking_number))
    has_inbound = bool(_clean(order.inbound_number))

    if not has_outbound and not has_inbound:
        raise NoTrackingNumber()
    if not has_outbound:
        return Direction.INBOUND
    if not has_inbound:
        return Direction.OUTBOUND

    recorded = order.kit_tracking_status.direction if order.kit_tracking_status else None
    if order.is_kit_order and recorded == Direction.INBOUND:
        return Direction.INBOUND
    if canonical_status(order.status) in INBOUND_TRACKING_STATUSES:
        return Direction.INBOUND
    return Direction.OUTBOUND


def tracking_number_for(order: Order, direction: Direction) -> Optional[str]:
    """Tracking number of the given leg (inbound falls back to the legacy field)."""
    if direction == Direction.INBOUND:
        return _clean(order.inbound_tracking_number) or _clean(order.tracking_number)
    return _clean(order.outbound_tracking_number)


def _label_carrier(label: LabelRecord | None) -> Optional[str]:
    if label is None:
        return None

    direct = _clean(label.carrier_code)
    if direct:
        return direct

    # Labels written by older tooling nest the carrier under the shipment
    shipment = (label.model_extra or {}).get("shipment")
    if isinstance(shipment, dict):
        return _clean(shipment.get("carrier_code")) or _clean(
            shipment.get("carrierCode")
        )
    return None


def resolve_carrier_code(
    order: Order, direction: Direction, default: str = DEFAULT_CARRIER_CODE
) -> str:
    """
    Carrier code to query for one leg.

    Explicit per-leg fields win, then the leg's own label slots, then any
    label that names a carrier, then ``default``.
    """
    if direction == Direction.INBOUND:
        candidates = [order.inbound_carrier_code, order.label_tracking_carrier_code]
    else:
        candidates = [order.outbound_carrier_code]

    for slot in (*_LEG_LABEL_SLOTS[direction], "primary"):
        candidates.append(_label_carrier(order.labels.get(slot)))

    for candidate in candidates:
        code = _clean(candidate)
        if code:
            return code

    for label in order.labels.values():
        code = _label_carrier(label)
        if code:
            return code

    return default
