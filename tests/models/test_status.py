"""
Tests for the order status vocabulary and the Order document model.
"""

import pytest

from buyback.models.order import Order
from buyback.models.status import (
    LEGACY_ALIASES,
    STATUS_ALIASES,
    OrderStatus,
    canonical_status,
    format_status_label,
    is_legacy_alias,
    is_status_past_received,
)


class TestCanonicalStatus:
    """Tests for canonical_status()."""

    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_canonical_values_map_to_themselves(self, status):
        assert canonical_status(status.value) is status

    @pytest.mark.parametrize("alias,expected", list(STATUS_ALIASES.items()))
    def test_aliases(self, alias, expected):
        assert canonical_status(alias) is expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Phone On The Way To Us", OrderStatus.PHONE_ON_THE_WAY),
            ("  KIT-SENT ", OrderStatus.KIT_SENT),
            ("re_offered_pending", OrderStatus.RE_OFFERED_PENDING),
            ("return label generated", OrderStatus.RETURN_LABEL_GENERATED),
        ],
    )
    def test_case_and_separators_are_ignored(self, value, expected):
        assert canonical_status(value) is expected

    @pytest.mark.parametrize("value", [None, "", "teleported"])
    def test_unknown(self, value):
        assert canonical_status(value) is None

    def test_legacy_aliases_index(self):
        assert "phone_on_the_way_to_us" in LEGACY_ALIASES[OrderStatus.PHONE_ON_THE_WAY]
        assert LEGACY_ALIASES[OrderStatus.KIT_SENT] == frozenset()

    def test_is_legacy_alias(self):
        assert is_legacy_alias("canceled") is True
        assert is_legacy_alias("cancelled") is False
        assert is_legacy_alias("teleported") is False


class TestPastReceived:
    """Tests for is_status_past_received()."""

    @pytest.mark.parametrize(
        "status",
        ["received", "device_received", "completed", "re-offered-pending", "emailed"],
    )
    def test_past_received(self, status):
        assert is_status_past_received(status) is True

    @pytest.mark.parametrize(
        "status", ["kit_sent", "phone_on_the_way", "delivered_to_us", None, ""]
    )
    def test_not_past_received(self, status):
        assert is_status_past_received(status) is False

    @pytest.mark.parametrize(
        "status", ["Reoffer sent", "return label printed", "received by warehouse"]
    )
    def test_free_form_statuses(self, status):
        assert is_status_past_received(status) is True

    def test_kit_received_is_not_device_received(self):
        assert is_status_past_received("kit received by customer") is False


def test_format_status_label():
    assert format_status_label("kit_on_the_way_to_customer") == "Kit On The Way To Customer"
    assert format_status_label("re-offered-pending") == "Re Offered Pending"
    assert format_status_label(None) == ""


class TestOrderModel:
    """Tests for the Order document model."""

    def test_unknown_keys_round_trip(self):
        order = Order.model_validate(
            {"id": "SHC-30000", "device": {"model": "Pixel 8"}, "status": "kit_sent"}
        )
        dumped = order.model_dump(mode="json")
        assert dumped["device"] == {"model": "Pixel 8"}

    def test_is_kit_order(self):
        assert Order(id="1", shipping_preference=" shipping kit requested ").is_kit_order
        assert not Order(id="1", shipping_preference="Email Label Requested").is_kit_order

    def test_inbound_number_falls_back_to_legacy_field(self):
        assert Order(id="1", tracking_number="LEGACY").inbound_number == "LEGACY"
        assert (
            Order(id="1", tracking_number="LEGACY", inbound_tracking_number="IN1")
            .inbound_number
            == "IN1"
        )
