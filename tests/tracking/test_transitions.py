"""Tests for tracking-driven order status transitions."""

from datetime import datetime, timezone

import pytest

from buyback.models.order import Order
from buyback.models.status import Direction, OrderStatus
from buyback.models.tracking import TrackingSnapshot
from buyback.tracking.classifier import classify_tracking
from buyback.tracking.transitions import build_tracking_update, inbound_baseline_status

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
EARLIER = datetime(2025, 2, 20, 9, 0, tzinfo=timezone.utc)

KIT = "Shipping Kit Requested"
EMAIL = "Email Label Requested"

DELIVERED = TrackingSnapshot(status_code="DE", delivered=True)
IN_TRANSIT = TrackingSnapshot(status_code="IT", in_transit=True)
ACCEPTED = TrackingSnapshot(status_code="AC", accepted_without_eta=True)
QUIET = TrackingSnapshot(status_code="NY_", status_description="Label printed")


def update_for(order, snapshot, direction):
    return build_tracking_update(order, snapshot, direction, "TN1", "usps", NOW)


class TestOutbound:
    def test_delivered(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="kit_sent")
        update = update_for(order, DELIVERED, Direction.OUTBOUND)

        assert update.delivered is True
        assert update.status == OrderStatus.KIT_DELIVERED
        assert update.payload["kit_delivered_at"] == NOW
        assert update.payload["last_status_update_at"] == NOW

    def test_delivered_keeps_existing_timestamp(self):
        order = Order(
            id="SHC-1",
            shipping_preference=KIT,
            status="kit_delivered",
            kit_delivered_at=EARLIER,
        )
        update = update_for(order, DELIVERED, Direction.OUTBOUND)
        assert "kit_delivered_at" not in update.payload

    def test_in_transit(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="kit_sent")
        update = update_for(order, IN_TRANSIT, Direction.OUTBOUND)

        assert update.status == OrderStatus.KIT_ON_THE_WAY_TO_CUSTOMER
        assert update.payload["kit_sent_at"] == NOW

    def test_accepted_without_eta_counts_as_movement(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="kit_sent")
        update = update_for(order, ACCEPTED, Direction.OUTBOUND)
        assert update.status == OrderStatus.KIT_ON_THE_WAY_TO_CUSTOMER

    def test_quiet_resets_to_kit_sent(self):
        order = Order(
            id="SHC-1", shipping_preference=KIT, status="shipping_kit_requested"
        )
        update = update_for(order, QUIET, Direction.OUTBOUND)
        assert update.status == OrderStatus.KIT_SENT

    def test_quiet_already_kit_sent(self):
        order = Order(
            id="SHC-1", shipping_preference=KIT, status="kit_sent", kit_sent_at=EARLIER
        )
        update = update_for(order, QUIET, Direction.OUTBOUND)
        assert "status" not in update.payload
        assert "last_status_update_at" not in update.payload


class TestInbound:
    def test_kit_delivered_then_in_transit(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="kit_delivered")
        update = update_for(order, IN_TRANSIT, Direction.INBOUND)
        assert update.status == OrderStatus.PHONE_ON_THE_WAY

    def test_email_label_delivered_is_auto_received(self):
        order = Order(id="SHC-1", shipping_preference=EMAIL, status="phone_on_the_way")
        update = update_for(order, DELIVERED, Direction.INBOUND)

        assert update.status == OrderStatus.DELIVERED_TO_US
        assert update.payload["received_at"] == NOW
        assert update.payload["auto_received"] is True
        assert "kit_delivered_to_us_at" not in update.payload

    def test_kit_delivered_to_us(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="phone_on_the_way")
        update = update_for(order, DELIVERED, Direction.INBOUND)

        assert update.status == OrderStatus.DELIVERED_TO_US
        assert update.payload["kit_delivered_to_us_at"] == NOW
        assert "auto_received" not in update.payload

    @pytest.mark.parametrize(
        "preference,kit_delivered_at,expected",
        [
            (KIT, EARLIER, OrderStatus.KIT_DELIVERED),
            (KIT, None, OrderStatus.KIT_SENT),
            (EMAIL, None, OrderStatus.LABEL_GENERATED),
        ],
    )
    def test_quiet_falls_back_to_baseline(self, preference, kit_delivered_at, expected):
        order = Order(
            id="SHC-1",
            shipping_preference=preference,
            status="order_pending",
            kit_delivered_at=kit_delivered_at,
        )
        assert inbound_baseline_status(order) == expected
        update = update_for(order, QUIET, Direction.INBOUND)
        assert update.status == expected

    def test_quiet_does_not_roll_back_phone_on_the_way(self):
        order = Order(id="SHC-1", shipping_preference=EMAIL, status="phone_on_the_way")
        update = update_for(order, QUIET, Direction.INBOUND)
        assert "status" not in update.payload


class TestPayload:
    def test_snapshot_is_recorded(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="kit_sent")
        snapshot = classify_tracking(
            {
                "status_code": "IT",
                "status_description": "In Transit",
                "updated_at": "2025-03-01T10:00:00Z",
                "estimated_delivery_date": "2025-03-04",
            }
        )
        update = update_for(order, snapshot, Direction.OUTBOUND)

        assert update.payload["kit_tracking_status"] == {
            "status_code": "IT",
            "status_description": "In Transit",
            "carrier_code": "usps",
            "last_updated": "2025-03-01T10:00:00Z",
            "estimated_delivery": "2025-03-04",
            "tracking_number": "TN1",
            "direction": "outbound",
        }

    def test_legacy_status_is_canonicalized(self):
        order = Order(
            id="SHC-1", shipping_preference=EMAIL, status="phone_on_the_way_to_us"
        )
        update = update_for(order, QUIET, Direction.INBOUND)
        assert update.status == OrderStatus.PHONE_ON_THE_WAY
        assert "last_status_update_at" not in update.payload

    def test_does_not_mutate_order(self):
        order = Order(id="SHC-1", shipping_preference=KIT, status="kit_sent")
        before = order.model_dump()
        update_for(order, DELIVERED, Direction.OUTBOUND)
        assert order.model_dump() == before
