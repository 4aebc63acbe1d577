"""
Canonical order lifecycle vocabulary.

Stored order documents carry many historical spellings of the same status.
``STATUS_ALIASES`` is the single table mapping every known spelling to its
canonical ``OrderStatus``; all status comparisons go through
``canonical_status``.
"""

import re
from enum import StrEnum


class OrderStatus(StrEnum):
    """Order lifecycle status"""

    ORDER_PENDING = "order_pending"
    SHIPPING_KIT_REQUESTED = "shipping_kit_requested"
    KIT_NEEDS_PRINTING = "kit_needs_printing"
    LABEL_GENERATED = "label_generated"
    KIT_SENT = "kit_sent"
    KIT_ON_THE_WAY_TO_CUSTOMER = "kit_on_the_way_to_customer"
    KIT_DELIVERED = "kit_delivered"
    KIT_ON_THE_WAY_TO_US = "kit_on_the_way_to_us"
    PHONE_ON_THE_WAY = "phone_on_the_way"
    DELIVERED_TO_US = "delivered_to_us"
    RECEIVED = "received"
    IMEI_CHECKED = "imei_checked"
    EMAILED = "emailed"
    BLACKLISTED = "blacklisted"
    RE_OFFERED_PENDING = "re-offered-pending"
    RE_OFFERED_ACCEPTED = "re-offered-accepted"
    RE_OFFERED_DECLINED = "re-offered-declined"
    RE_OFFERED_AUTO_ACCEPTED = "re-offered-auto-accepted"
    RETURN_LABEL_GENERATED = "return-label-generated"
    REQUOTE_ACCEPTED = "requote_accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    VOIDED = "voided"


class ShippingPreference(StrEnum):
    """How the customer sends the device in"""

    SHIPPING_KIT = "Shipping Kit Requested"
    EMAIL_LABEL = "Email Label Requested"


class Direction(StrEnum):
    """Shipment leg"""

    OUTBOUND = "outbound"  # business -> customer (kit)
    INBOUND = "inbound"  # customer -> business (device)


TERMINAL_STATUSES = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.VOIDED}
)

# Legacy spelling -> canonical status
STATUS_ALIASES: dict[str, OrderStatus] = {
    "phone_on_the_way_to_us": OrderStatus.PHONE_ON_THE_WAY,
    "needs_printing": OrderStatus.KIT_NEEDS_PRINTING,
    "canceled": OrderStatus.CANCELLED,
    "complete": OrderStatus.COMPLETED,
    "device_received": OrderStatus.RECEIVED,
    "received_device": OrderStatus.RECEIVED,
    "balance_email_sent": OrderStatus.EMAILED,
    "balanced_email_sent": OrderStatus.EMAILED,
    "password_email_sent": OrderStatus.EMAILED,
    "fmi_email_sent": OrderStatus.EMAILED,
    "re_offered_pending": OrderStatus.RE_OFFERED_PENDING,
    "re_offered_accepted": OrderStatus.RE_OFFERED_ACCEPTED,
    "re_offered_declined": OrderStatus.RE_OFFERED_DECLINED,
    "re_offered_auto_accepted": OrderStatus.RE_OFFERED_AUTO_ACCEPTED,
    "reoffer_pending": OrderStatus.RE_OFFERED_PENDING,
    "reoffer_accepted": OrderStatus.RE_OFFERED_ACCEPTED,
    "reoffer_declined": OrderStatus.RE_OFFERED_DECLINED,
    "reoffer_auto_accepted": OrderStatus.RE_OFFERED_AUTO_ACCEPTED,
    "return_label_generated": OrderStatus.RETURN_LABEL_GENERATED,
}

# Canonical status -> every legacy spelling that maps to it
LEGACY_ALIASES: dict[OrderStatus, frozenset[str]] = {
    status: frozenset(
        alias for alias, target in STATUS_ALIASES.items() if target is status
    )
    for status in OrderStatus
}

_SEPARATORS = re.compile(r"[\s-]+")


def _lookup_key(value: str) -> str:
    return _SEPARATORS.sub("_", value.strip().lower())


# Lookup keyed on the underscore form of every canonical value and alias
_CANONICAL_LOOKUP: dict[str, OrderStatus] = {
    **{_lookup_key(s.value): s for s in OrderStatus},
    **{_lookup_key(alias): s for alias, s in STATUS_ALIASES.items()},
}

# Statuses the order reaches only once the device is in hand
POST_RECEIVED_STATUSES = frozenset(
    {
        OrderStatus.RECEIVED,
        OrderStatus.IMEI_CHECKED,
        OrderStatus.EMAILED,
        OrderStatus.BLACKLISTED,
        OrderStatus.RE_OFFERED_PENDING,
        OrderStatus.RE_OFFERED_ACCEPTED,
        OrderStatus.RE_OFFERED_DECLINED,
        OrderStatus.RE_OFFERED_AUTO_ACCEPTED,
        OrderStatus.RETURN_LABEL_GENERATED,
        OrderStatus.REQUOTE_ACCEPTED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.VOIDED,
    }
)


def canonical_status(value: str | None) -> OrderStatus | None:
    """
    Map any stored spelling of a status to its canonical member.

    Case, surrounding whitespace and ``-``/``_``/space separators are
    ignored. Unknown strings return None.
    """
    if not value or not isinstance(value, str):
        return None
    return _CANONICAL_LOOKUP.get(_lookup_key(value))


def is_legacy_alias(value: str | None) -> bool:
    """True when ``value`` is a recognised spelling other than the canonical one."""
    status = canonical_status(value)
    return status is not None and value != status.value


def is_status_past_received(value: str | None) -> bool:
    """Whether the order has already been received, resolved or closed."""
    status = canonical_status(value)
    if status is not None:
        return status in POST_RECEIVED_STATUSES

    # Free-form statuses written by older tooling
    raw = (value or "").strip().lower()
    if not raw:
        return False
    if any(token in raw for token in ("reoffer", "re-offer", "re_offer")):
        return True
    if any(
        token in raw
        for token in ("return label", "return-label", "return_label", "returnlabel")
    ):
        return True
    if "received" in raw and "not_received" not in raw and "kit" not in raw:
        return True
    return "completed" in raw


def format_status_label(value: str | None) -> str:
    """Render ``kit_on_the_way_to_customer`` as ``Kit On The Way To Customer``."""
    if not value:
        return ""
    words = re.sub(r"[_-]+", " ", str(value)).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)
