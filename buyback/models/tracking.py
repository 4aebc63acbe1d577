from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from buyback.models.order import KitTrackingStatus
from buyback.models.status import Direction


class CanonicalTrackingStatus(StrEnum):
    """Carrier-independent tracking vocabulary"""

    DELIVERED = "DELIVERED"
    DELIVERED_TO_AGENT = "DELIVERED_TO_AGENT"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    ACCEPTED = "ACCEPTED"
    SHIPMENT_ACCEPTED = "SHIPMENT_ACCEPTED"
    DELIVERY_ATTEMPT = "DELIVERY_ATTEMPT"
    NOT_YET_IN_SYSTEM = "NOT_YET_IN_SYSTEM"
    LABEL_CREATED = "LABEL_CREATED"
    UNKNOWN = "UNKNOWN"


class TrackingSnapshot(BaseModel):
    """Classifier output for one provider response"""

    status_code: Optional[str] = None
    status_description: str = ""
    last_updated: Optional[str] = None
    estimated_delivery: Optional[str] = None
    delivered: bool = False
    in_transit: bool = False
    accepted_without_eta: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def has_movement(self) -> bool:
        """In transit, or accepted into the network without an ETA yet."""
        return self.in_transit or self.accepted_without_eta


class TrackingUpdate(BaseModel):
    """Transition engine output"""

    payload: dict[str, Any] = Field(description="Fields to write on the order")
    delivered: bool
    direction: Direction

    @property
    def status(self) -> Optional[str]:
        return self.payload.get("status")


class RefreshTrackingRequest(BaseModel):
    order_id: str = Field(description="Order to refresh")
    force: bool = Field(default=False, description="Ignore the refresh cooldown")


class RefreshResult(BaseModel):
    """Result of one tracking refresh"""

    order_id: str
    status: Optional[str] = None
    previous_status: Optional[str] = None
    delivered: bool = False
    direction: Optional[Direction] = None
    tracking: Optional[KitTrackingStatus] = None
    message: str = ""
    skipped: bool = False
    reason: Optional[str] = None
