"""
Customer notification intents.

The order core decides *that* a customer should hear about a change and
hands a structured ``NotificationIntent`` to a ``Notifier``. Rendering and
delivery (email, push) belong to the notifier. Delivery is at-most-once:
failures are logged and never fail the state change that caused them.
"""

import logging
from enum import StrEnum
from typing import Any, Iterable, Optional, Protocol

from pydantic import BaseModel, Field

from buyback.models.order import Order, VoidStatus
from buyback.models.status import OrderStatus, canonical_status

logger = logging.getLogger(__name__)


class NotificationKind(StrEnum):
    KIT_DELIVERED = "kit_delivered"
    DELIVERED_TO_US = "delivered_to_us"
    LABEL_VOIDED = "label_voided"


_SUBJECTS = {
    NotificationKind.KIT_DELIVERED: "Your shipping kit has arrived",
    NotificationKind.DELIVERED_TO_US: "We received your device",
    NotificationKind.LABEL_VOIDED: "Your shipping label was voided",
}

_STATUS_KINDS = {
    OrderStatus.KIT_DELIVERED: NotificationKind.KIT_DELIVERED,
    OrderStatus.DELIVERED_TO_US: NotificationKind.DELIVERED_TO_US,
}


class NotificationIntent(BaseModel):
    """A notification the customer should receive"""

    kind: NotificationKind
    order_id: str
    recipient: Optional[str] = Field(default=None, description="Customer email")
    subject: str
    data: dict[str, Any] = Field(default_factory=dict)


class Notifier(Protocol):
    def send(self, intent: NotificationIntent) -> None: ...


class LoggingNotifier:
    """Notifier that only records intents in the log."""

    def send(self, intent: NotificationIntent) -> None:
        logger.info(
            "Notification %s for order %s to %s",
            intent.kind,
            intent.order_id,
            intent.recipient or "<no recipient>",
            extra={"json_fields": intent.model_dump(mode="json")},
        )


def _intent(
    kind: NotificationKind, order: Order, data: Optional[dict[str, Any]] = None
) -> NotificationIntent:
    return NotificationIntent(
        kind=kind,
        order_id=order.id,
        recipient=order.shipping_info.email if order.shipping_info else None,
        subject=_SUBJECTS[kind],
        data={
            "customer_name": (
                order.shipping_info.full_name if order.shipping_info else None
            ),
            **(data or {}),
        },
    )


def plan_notifications(previous: Order, updated: Order) -> list[NotificationIntent]:
    """Intents implied by the change from ``previous`` to ``updated``."""
    intents = []

    before = canonical_status(previous.status)
    after = canonical_status(updated.status)
    if after != before and after in _STATUS_KINDS:
        intents.append(_intent(_STATUS_KINDS[after], updated, {"status": after.value}))

    newly_voided = [
        slot
        for slot, label in updated.labels.items()
        if label.void_status == VoidStatus.VOIDED
        and (
            slot not in previous.labels
            or previous.labels[slot].void_status != VoidStatus.VOIDED
        )
    ]
    if newly_voided:
        intents.append(
            _intent(NotificationKind.LABEL_VOIDED, updated, {"slots": newly_voided})
        )

    return intents


def dispatch(notifier: Notifier, intents: Iterable[NotificationIntent]):
    """Send intents one by one; a failed send is logged and skipped."""
    for intent in intents:
        try:
            notifier.send(intent)
        except Exception as e:
            logger.error(
                "Failed to send %s notification for order %s: %s",
                intent.kind,
                intent.order_id,
                e,
            )
