"""Tests for the carrier tracking status classifier."""

import pytest

from buyback.models.tracking import CanonicalTrackingStatus
from buyback.tracking.classifier import (
    classify_tracking,
    extract_tracking_fields,
    is_accepted_without_eta,
    is_transit_status,
    normalize_shipstation_tracking,
    normalize_tracking_status,
)


class TestExtractTrackingFields:
    def test_snake_case_fields(self):
        fields = extract_tracking_fields(
            {
                "status_code": "IT",
                "status_description": "In Transit",
                "updated_at": "2025-03-01T10:00:00Z",
                "estimated_delivery_date": "2025-03-04",
            }
        )
        assert fields["status_code"] == "IT"
        assert fields["status_description"] == "In Transit"
        assert fields["last_updated"] == "2025-03-01T10:00:00Z"
        assert fields["estimated_delivery"] == "2025-03-04"
        assert fields["delivered"] is False

    def test_camel_case_and_last_event_fallback(self):
        fields = extract_tracking_fields(
            {
                "statusCode": "AC",
                "statusDescription": "Accepted",
                "last_event": {"occurred_at": "2025-03-01T08:00:00Z"},
            }
        )
        assert fields["status_code"] == "AC"
        assert fields["status_description"] == "Accepted"
        assert fields["last_updated"] == "2025-03-01T08:00:00Z"
        assert fields["estimated_delivery"] is None

    def test_carrier_description_fallback(self):
        fields = extract_tracking_fields(
            {"carrier_status_description": "Delivered, In/At Mailbox"}
        )
        assert fields["status_code"] is None
        assert fields["status_description"] == "Delivered, In/At Mailbox"
        assert fields["delivered"] is True

    def test_empty_input(self):
        fields = extract_tracking_fields(None)
        assert fields["status_code"] is None
        assert fields["status_description"] == ""
        assert fields["delivered"] is False


class TestIsTransitStatus:
    @pytest.mark.parametrize("code", ["IT", "OF", "AT", "NY", "PU", "it"])
    def test_transit_codes(self, code):
        assert is_transit_status(code, "", None) is True

    def test_accepted_without_eta_is_not_transit(self):
        assert is_transit_status("AC", "Accepted", None) is False

    def test_accepted_with_eta_is_transit(self):
        assert is_transit_status("AC", "Accepted", "2025-03-04") is True

    def test_empty_description_without_code(self):
        assert is_transit_status(None, "", None) is False

    def test_acceptance_description_without_eta(self):
        assert is_transit_status(None, "USPS acceptance", None) is False

    def test_delivered_description(self):
        assert is_transit_status("XX", "Delivered to front door", "2025-03-04") is False

    @pytest.mark.parametrize(
        "description",
        [
            "Your package is in transit to the next facility",
            "Arrived at USPS Regional Facility",
            "Departed Post Office",
            "Processed at facility",
        ],
    )
    def test_transit_keywords(self, description):
        assert is_transit_status(None, description, None) is True

    def test_unrelated_description(self):
        assert is_transit_status(None, "Label printed", None) is False


class TestIsAcceptedWithoutEta:
    def test_eta_wins(self):
        assert is_accepted_without_eta("AC", "Accepted", "2025-03-04") is False

    @pytest.mark.parametrize("code", ["AC", "ac", "SHIPMENT_ACCEPTED"])
    def test_accepted_codes(self, code):
        assert is_accepted_without_eta(code, "", None) is True

    def test_accepted_description(self):
        assert is_accepted_without_eta(None, "Shipment accepted at post office", None)

    def test_accept_must_be_a_word(self):
        assert is_accepted_without_eta(None, "Unacceptable address", None) is False


class TestClassifyTracking:
    def test_delivered_code(self):
        snapshot = classify_tracking({"status_code": "DE"})
        assert snapshot.delivered is True

    def test_accepted_without_eta(self):
        snapshot = classify_tracking({"status_code": "AC"})
        assert snapshot.in_transit is False
        assert snapshot.accepted_without_eta is True
        assert snapshot.has_movement is True

    def test_accepted_with_eta(self):
        snapshot = classify_tracking(
            {"status_code": "AC", "estimated_delivery_date": "2025-03-04"}
        )
        assert snapshot.in_transit is True
        assert snapshot.accepted_without_eta is False

    def test_is_pure(self):
        data = {
            "status_code": "IT",
            "status_description": "In Transit",
            "estimated_delivery_date": "2025-03-04",
        }
        assert classify_tracking(data) == classify_tracking(data)
        assert data == {
            "status_code": "IT",
            "status_description": "In Transit",
            "estimated_delivery_date": "2025-03-04",
        }


class TestNormalizeTrackingStatus:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("DE", CanonicalTrackingStatus.DELIVERED),
            ("dl", CanonicalTrackingStatus.DELIVERED),
            ("SP", CanonicalTrackingStatus.DELIVERED_TO_AGENT),
            ("NT", CanonicalTrackingStatus.IN_TRANSIT),
            ("OD", CanonicalTrackingStatus.OUT_FOR_DELIVERY),
            ("AC", CanonicalTrackingStatus.ACCEPTED),
            ("OC", CanonicalTrackingStatus.SHIPMENT_ACCEPTED),
            ("AT", CanonicalTrackingStatus.DELIVERY_ATTEMPT),
            ("NY", CanonicalTrackingStatus.NOT_YET_IN_SYSTEM),
            ("LB", CanonicalTrackingStatus.LABEL_CREATED),
            ("UN", CanonicalTrackingStatus.UNKNOWN),
            ("IN_TRANSIT", CanonicalTrackingStatus.IN_TRANSIT),
        ],
    )
    def test_alias_table(self, code, expected):
        assert normalize_tracking_status(code) == expected

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("PACKAGE_DELIVERED", CanonicalTrackingStatus.DELIVERED),
            ("DELIVERED_AGENT_PICKUP", CanonicalTrackingStatus.DELIVERED_TO_AGENT),
            ("SHIPMENT_ACCEPT_SCAN", CanonicalTrackingStatus.SHIPMENT_ACCEPTED),
            ("ACCEPTED_AT_FACILITY", CanonicalTrackingStatus.ACCEPTED),
            ("TRANSIT_SCAN", CanonicalTrackingStatus.IN_TRANSIT),
            ("FAILED_ATTEMPT", CanonicalTrackingStatus.DELIVERY_ATTEMPT),
        ],
    )
    def test_code_substrings(self, code, expected):
        assert normalize_tracking_status(code) == expected

    @pytest.mark.parametrize(
        "description,expected",
        [
            ("Out for Delivery", CanonicalTrackingStatus.OUT_FOR_DELIVERY),
            ("Delivered to agent", CanonicalTrackingStatus.DELIVERED_TO_AGENT),
            ("Delivered, Front Door", CanonicalTrackingStatus.DELIVERED),
            ("Moving through network", CanonicalTrackingStatus.IN_TRANSIT),
            ("Shipping label created", CanonicalTrackingStatus.LABEL_CREATED),
            ("Not yet in system", CanonicalTrackingStatus.NOT_YET_IN_SYSTEM),
        ],
    )
    def test_description_keywords(self, description, expected):
        assert normalize_tracking_status(None, description) == expected

    def test_unrecognised_code_is_unknown(self):
        assert normalize_tracking_status("ZZ", "Mystery") == CanonicalTrackingStatus.UNKNOWN

    def test_nothing_known(self):
        assert normalize_tracking_status(None, None) is None


class TestNormalizeShipStationTracking:
    def test_non_dict(self):
        assert normalize_shipstation_tracking(None) is None
        assert normalize_shipstation_tracking(["x"]) is None

    def test_first_shipment_with_camel_case(self):
        normalized = normalize_shipstation_tracking(
            {
                "shipments": [
                    {
                        "trackingNumber": "9400",
                        "statusCode": "IT",
                        "statusDescription": "In Transit",
                        "carrierCode": "usps",
                        "estimatedDeliveryDate": "2025-03-04",
                        "events": [
                            {"occurredAt": "2025-03-02T09:00:00Z", "description": "Departed"},
                            {"occurredAt": "2025-03-01T09:00:00Z", "description": "Accepted"},
                        ],
                    }
                ]
            }
        )
        assert normalized["tracking_number"] == "9400"
        assert normalized["status_code"] == "IT"
        assert normalized["carrier_code"] == "usps"
        assert normalized["estimated_delivery_date"] == "2025-03-04"
        assert len(normalized["events"]) == 2
        assert normalized["last_event"]["description"] == "Departed"
        assert normalized["updated_at"] == "2025-03-02T09:00:00Z"

    def test_root_object_and_explicit_updated_at(self):
        normalized = normalize_shipstation_tracking(
            {
                "status_code": "DE",
                "updatedAt": "2025-03-05T12:00:00Z",
                "trackingEvents": [{"occurred_at": "2025-03-05T11:00:00Z"}],
            }
        )
        assert normalized["status_code"] == "DE"
        assert normalized["updated_at"] == "2025-03-05T12:00:00Z"

    def test_feeds_classifier(self):
        snapshot = classify_tracking(
            normalize_shipstation_tracking(
                {"shipment": {"statusCode": "DE", "statusDescription": "Delivered"}}
            )
        )
        assert snapshot.delivered is True
