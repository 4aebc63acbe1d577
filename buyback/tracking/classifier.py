"""
Carrier tracking status classifier.

Turns a provider tracking response into a ``TrackingSnapshot``. Providers
disagree on field names (``status_code`` vs ``statusCode``) and carriers
disagree on codes, so classification falls back from codes to free-text
descriptions. Every function here is pure.
"""

import re
from typing import Any, Optional

from buyback.models.tracking import CanonicalTrackingStatus, TrackingSnapshot

TRANSIT_STATUS_CODES = frozenset(
    {
        "IT",
        "OF",
        "AC",
        "AT",
        "NY",
        "SP",
        "PU",
        "OC",
        "OD",
        "OP",
        "PC",
        "SC",
        "AR",
        "AP",
        "IP",
    }
)

TRANSIT_KEYWORDS = (
    "in transit",
    "out for delivery",
    "on its way",
    "acceptance",
    "shipment received",
    "arrived at",
    "departed",
    "processed at",
    "moving through",
    "package acceptance",
)

ACCEPTED_PATTERN = re.compile(r"\baccept(ed|ance)\b")

# Exact code -> canonical status
TRACKING_STATUS_ALIASES: dict[str, CanonicalTrackingStatus] = {
    "DE": CanonicalTrackingStatus.DELIVERED,
    "DL": CanonicalTrackingStatus.DELIVERED,
    "DELIVERED TO AGENT": CanonicalTrackingStatus.DELIVERED_TO_AGENT,
    "SP": CanonicalTrackingStatus.DELIVERED_TO_AGENT,
    "IT": CanonicalTrackingStatus.IN_TRANSIT,
    "NT": CanonicalTrackingStatus.IN_TRANSIT,
    "OP": CanonicalTrackingStatus.IN_TRANSIT,
    "PC": CanonicalTrackingStatus.IN_TRANSIT,
    "SC": CanonicalTrackingStatus.IN_TRANSIT,
    "AR": CanonicalTrackingStatus.IN_TRANSIT,
    "AP": CanonicalTrackingStatus.IN_TRANSIT,
    "IP": CanonicalTrackingStatus.IN_TRANSIT,
    "PU": CanonicalTrackingStatus.IN_TRANSIT,
    "OF": CanonicalTrackingStatus.OUT_FOR_DELIVERY,
    "OD": CanonicalTrackingStatus.OUT_FOR_DELIVERY,
    "AC": CanonicalTrackingStatus.ACCEPTED,
    "OC": CanonicalTrackingStatus.SHIPMENT_ACCEPTED,
    "AT": CanonicalTrackingStatus.DELIVERY_ATTEMPT,
    "NY": CanonicalTrackingStatus.NOT_YET_IN_SYSTEM,
    "LA": CanonicalTrackingStatus.LABEL_CREATED,
    "LB": CanonicalTrackingStatus.LABEL_CREATED,
    "UN": CanonicalTrackingStatus.UNKNOWN,
    **{status.value: status for status in CanonicalTrackingStatus},
}


def _first(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return None


def extract_tracking_fields(data: dict[str, Any] | None) -> dict[str, Any]:
    """
    Pull the classifier inputs out of a provider response.

    Returns:
        dict with status_code, status_description, last_updated,
        estimated_delivery and delivered
    """
    data = data or {}
    status_code = _first(data.get("status_code"), data.get("statusCode"))
    status_description = (
        _first(
            data.get("status_description"),
            data.get("statusDescription"),
            data.get("carrier_status_description"),
        )
        or ""
    )
    last_event = data.get("last_event") or {}

    return {
        "status_code": status_code,
        "status_description": status_description,
        "last_updated": _first(data.get("updated_at"), last_event.get("occurred_at")),
        "estimated_delivery": data.get("estimated_delivery_date") or None,
        "delivered": status_code == "DE"
        or "delivered" in str(status_description).lower(),
    }


def is_transit_status(
    status_code: Optional[str],
    status_description: Optional[str],
    estimated_delivery: Optional[str],
) -> bool:
    """Whether the shipment is moving through the carrier network."""
    code = str(status_code).upper() if status_code else ""
    has_eta = bool(estimated_delivery)

    # Accepted without an ETA is not movement yet
    if code == "AC" and not has_eta:
        return False

    if code in TRANSIT_STATUS_CODES:
        return True

    description = (
        status_description.lower() if isinstance(status_description, str) else ""
    )
    if not description:
        return False

    if not has_eta and ACCEPTED_PATTERN.search(description):
        return False

    if "delivered" in description or "delivery complete" in description:
        return False

    return any(keyword in description for keyword in TRANSIT_KEYWORDS)


def is_accepted_without_eta(
    status_code: Optional[str],
    status_description: Optional[str],
    estimated_delivery: Optional[str],
) -> bool:
    """Whether the carrier accepted the package but has not scheduled delivery."""
    if estimated_delivery:
        return False

    code = str(status_code).upper() if status_code else ""
    if code in ("AC", "SHIPMENT_ACCEPTED"):
        return True

    description = (
        status_description.lower() if isinstance(status_description, str) else ""
    )
    return bool(description and ACCEPTED_PATTERN.search(description))


def classify_tracking(data: dict[str, Any] | None) -> TrackingSnapshot:
    """Classify one provider tracking response."""
    fields = extract_tracking_fields(data)
    code = fields["status_code"]
    description = fields["status_description"]
    eta = fields["estimated_delivery"]

    return TrackingSnapshot(
        status_code=code,
        status_description=description,
        last_updated=fields["last_updated"],
        estimated_delivery=eta,
        delivered=fields["delivered"],
        in_transit=is_transit_status(code, description, eta),
        accepted_without_eta=is_accepted_without_eta(code, description, eta),
    )


def normalize_tracking_status(
    status_code: Optional[str], status_description: Optional[str] = None
) -> CanonicalTrackingStatus | None:
    """
    Map a carrier code and description to the carrier-independent vocabulary.

    The exact alias table wins, then substrings of the code, then keywords
    in the description. Returns None when there is nothing to go on.
    """
    code = str(status_code).strip().upper() if status_code else ""
    description = str(status_description or "").strip().lower()

    if code in TRACKING_STATUS_ALIASES:
        return TRACKING_STATUS_ALIASES[code]

    if code:
        if "DELIVERED" in code:
            if "AGENT" in code:
                return CanonicalTrackingStatus.DELIVERED_TO_AGENT
            return CanonicalTrackingStatus.DELIVERED
        if "OUT_FOR_DELIVERY" in code:
            return CanonicalTrackingStatus.OUT_FOR_DELIVERY
        if "ACCEPT" in code:
            if "SHIPMENT" in code:
                return CanonicalTrackingStatus.SHIPMENT_ACCEPTED
            return CanonicalTrackingStatus.ACCEPTED
        if "TRANSIT" in code:
            return CanonicalTrackingStatus.IN_TRANSIT
        if "LABEL" in code:
            return CanonicalTrackingStatus.LABEL_CREATED
        if "ATTEMPT" in code:
            return CanonicalTrackingStatus.DELIVERY_ATTEMPT
        if "UNKNOWN" in code:
            return CanonicalTrackingStatus.UNKNOWN

    if description:
        if "out for delivery" in description:
            return CanonicalTrackingStatus.OUT_FOR_DELIVERY
        if "deliver" in description and "agent" in description:
            return CanonicalTrackingStatus.DELIVERED_TO_AGENT
        if "deliver" in description:
            return CanonicalTrackingStatus.DELIVERED
        if "in transit" in description or "moving through" in description:
            return CanonicalTrackingStatus.IN_TRANSIT
        if "accept" in description:
            return CanonicalTrackingStatus.ACCEPTED
        if "label" in description:
            return CanonicalTrackingStatus.LABEL_CREATED
        if "not yet" in description:
            return CanonicalTrackingStatus.NOT_YET_IN_SYSTEM
        if "attempt" in description:
            return CanonicalTrackingStatus.DELIVERY_ATTEMPT
        if "unknown" in description:
            return CanonicalTrackingStatus.UNKNOWN

    if code:
        return CanonicalTrackingStatus.UNKNOWN
    return None


def _normalize_event(event: Any) -> dict[str, Any] | None:
    if not isinstance(event, dict):
        return None

    return {
        "occurred_at": _first(
            event.get("occurredAt"),
            event.get("occurred_at"),
            event.get("eventDate"),
            event.get("event_date"),
        ),
        "carrier_occurred_at": _first(
            event.get("carrierOccurredAt"), event.get("carrier_occurred_at")
        ),
        "description": _first(
            event.get("description"),
            event.get("trackingStatus"),
            event.get("statusDescription"),
        ),
        "city_locality": _first(
            event.get("cityLocality"), event.get("city_locality"), event.get("city")
        ),
        "state_province": _first(
            event.get("stateProvince"), event.get("state_province"), event.get("state")
        ),
        "postal_code": _first(event.get("postalCode"), event.get("postal_code")),
        "status_code": _first(event.get("statusCode"), event.get("status_code")),
        "status_description": _first(
            event.get("statusDescription"), event.get("status_description")
        ),
    }


def normalize_shipstation_tracking(data: Any) -> dict[str, Any] | None:
    """
    Flatten a ShipStation tracking response into the ShipEngine shape.

    ShipStation may nest the shipment under ``shipments[0]`` or ``shipment``
    and uses camelCase keys; the classifier reads snake_case ShipEngine keys.
    The newest event is assumed to come first.
    """
    if not isinstance(data, dict):
        return None

    shipments = data.get("shipments")
    shipment = (shipments[0] if isinstance(shipments, list) and shipments else None) or (
        data.get("shipment") or data
    )
    if not isinstance(shipment, dict):
        return None

    raw_events = shipment.get("events")
    if not isinstance(raw_events, list):
        raw_events = shipment.get("trackingEvents")
    if not isinstance(raw_events, list):
        raw_events = []
    events = [e for e in (_normalize_event(event) for event in raw_events) if e]

    def pick(*keys: str) -> Any:
        return _first(*(shipment.get(key) for key in keys))

    def pick_with_root(*keys: str) -> Any:
        return _first(pick(*keys), *(data.get(key) for key in keys))

    normalized = {
        "tracking_number": pick_with_root("trackingNumber", "tracking_number"),
        "tracking_url": pick_with_root("trackingUrl", "tracking_url"),
        "status_code": _first(
            pick("statusCode", "status_code", "trackingStatusCode"),
            data.get("statusCode"),
            data.get("status_code"),
        ),
        "status_description": _first(
            pick("statusDescription", "status_description", "trackingStatus"),
            data.get("statusDescription"),
            data.get("status_description"),
        ),
        "carrier_code": pick_with_root("carrierCode", "carrier_code"),
        "carrier_status_code": pick_with_root(
            "carrierStatusCode", "carrier_status_code"
        ),
        "carrier_status_description": pick_with_root(
            "carrierStatusDescription", "carrier_status_description"
        ),
        "ship_date": pick("shipDate", "ship_date"),
        "estimated_delivery_date": pick(
            "estimatedDeliveryDate", "estimated_delivery_date"
        ),
        "actual_delivery_date": pick("actualDeliveryDate", "actual_delivery_date"),
        "exception_description": pick(
            "exceptionDescription", "exception_description"
        ),
        "events": events,
        "last_event": events[0] if events else None,
    }

    updated_at = pick_with_root("updatedAt", "updated_at")
    if updated_at:
        normalized["updated_at"] = updated_at
    elif events:
        normalized["updated_at"] = _first(
            events[0]["occurred_at"], events[0]["carrier_occurred_at"]
        )

    return normalized
