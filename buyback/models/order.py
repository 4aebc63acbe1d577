from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from buyback.models.status import Direction, OrderStatus, ShippingPreference


class LabelSlot(StrEnum):
    """Named position in an order's label map"""

    OUTBOUND = "outbound"  # kit sent to the customer
    INBOUND = "inbound"  # kit return label
    EMAIL = "email"  # emailed prepaid label
    RETURN = "return"  # device sent back to the customer
    PRIMARY = "primary"  # single-label orders created before slots existed


class VoidStatus(StrEnum):
    """Label void lifecycle: active -> pending_void -> voided | void_denied"""

    ACTIVE = "active"
    PENDING_VOID = "pending_void"
    VOIDED = "voided"
    VOID_DENIED = "void_denied"


VOID_STATUS_ORDER = {
    VoidStatus.ACTIVE: 0,
    VoidStatus.PENDING_VOID: 1,
    VoidStatus.VOIDED: 2,
    VoidStatus.VOID_DENIED: 2,
}


def can_move_void_status(current: VoidStatus, target: VoidStatus) -> bool:
    """Whether a label may go from ``current`` to ``target`` (never backward)."""
    return current == target or VOID_STATUS_ORDER[target] > VOID_STATUS_ORDER[current]


class ShippingInfo(BaseModel):
    """Customer contact and address"""

    full_name: Optional[str] = Field(default=None, description="Customer name")
    email: Optional[str] = Field(default=None, description="Customer email")
    street_address: Optional[str] = Field(default=None, description="Street address")
    city: Optional[str] = Field(default=None, description="City")
    state: Optional[str] = Field(default=None, description="State code")
    zip_code: Optional[str] = Field(default=None, description="Postal code")


class LabelRecord(BaseModel):
    """Shipping label stored in one slot of an order"""

    id: Optional[str] = Field(default=None, description="Provider label ID")
    tracking_number: Optional[str] = Field(
        default=None, description="Carrier tracking number"
    )
    download_url: Optional[str] = Field(default=None, description="Label PDF URL")
    carrier_code: Optional[str] = Field(default=None, description="Carrier code")
    service_code: Optional[str] = Field(default=None, description="Service code")
    status: str = Field(default="active", description="Label status")
    void_status: VoidStatus = Field(
        default=VoidStatus.ACTIVE, description="Void lifecycle state"
    )
    void_message: Optional[str] = Field(
        default=None, description="Last provider message about voiding"
    )
    void_error: Optional[str] = Field(
        default=None, description="Error from the last failed void attempt"
    )
    generated_at: Optional[datetime] = Field(
        default=None, description="Label creation time"
    )
    voided_at: Optional[datetime] = Field(default=None, description="Void time")
    last_void_attempt_at: Optional[datetime] = Field(
        default=None, description="Last void attempt"
    )

    model_config = ConfigDict(extra="allow")


class KitTrackingStatus(BaseModel):
    """Last tracking snapshot recorded on the order"""

    status_code: Optional[str] = None
    status_description: Optional[str] = None
    carrier_code: Optional[str] = None
    last_updated: Optional[str] = None
    estimated_delivery: Optional[str] = None
    tracking_number: Optional[str] = None
    direction: Optional[Direction] = None


class ActivityLogEntry(BaseModel):
    """Append-only activity log entry"""

    id: str = Field(description="Unique entry ID")
    type: str = Field(default="update", description="Entry type (status, update, ...)")
    message: str = Field(default="", description="Human-readable message")
    metadata: Optional[dict[str, Any]] = Field(
        default=None, description="Structured context"
    )
    at: datetime = Field(description="When the entry was recorded")


class Order(BaseModel):
    """
    Buyback order.

    Stored as a schemaless document: unknown keys survive round-trips
    (``extra="allow"``), the keys below are validated on every write.
    """

    # Identity
    id: str = Field(description="Order number (e.g. SHC-30000)")
    customer_id: Optional[str] = Field(
        default=None, description="Customer owning the per-customer mirror copy"
    )

    # Lifecycle
    status: str = Field(
        default=OrderStatus.ORDER_PENDING.value,
        description="Stored status (may be a legacy spelling)",
    )
    last_status_update_at: Optional[datetime] = None
    label_generated_at: Optional[datetime] = None
    kit_sent_at: Optional[datetime] = None
    kit_delivered_at: Optional[datetime] = None
    kit_delivered_to_us_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    auto_received: bool = False

    # Shipping
    shipping_preference: Optional[str] = Field(
        default=None, description="Shipping Kit Requested | Email Label Requested"
    )
    shipping_info: Optional[ShippingInfo] = None
    outbound_tracking_number: Optional[str] = None
    inbound_tracking_number: Optional[str] = None
    tracking_number: Optional[str] = Field(
        default=None, description="Legacy inbound tracking number"
    )
    outbound_carrier_code: Optional[str] = None
    inbound_carrier_code: Optional[str] = None
    label_tracking_carrier_code: Optional[str] = None
    labels: dict[str, LabelRecord] = Field(default_factory=dict)
    kit_tracking_status: Optional[KitTrackingStatus] = None

    # Refresh bookkeeping
    kit_tracking_last_refreshed_at: Optional[datetime] = None
    inbound_tracking_last_refreshed_at: Optional[datetime] = None
    last_tracking_refresh_at: Optional[datetime] = None
    last_tracking_refresh_source: Optional[str] = None

    # Promo
    promo_code: Optional[str] = None
    promo_bonus_amount: Optional[Decimal] = None

    # Activity
    activity_log: list[ActivityLogEntry] = Field(default_factory=list)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "id": "SHC-30000",
                "customer_id": "cus_123",
                "status": "kit_sent",
                "shipping_preference": "Shipping Kit Requested",
                "outbound_tracking_number": "9400111899223344556677",
                "labels": {
                    "outbound": {
                        "id": "se-123",
                        "tracking_number": "9400111899223344556677",
                        "carrier_code": "usps",
                        "void_status": "active",
                    }
                },
            }
        },
    )

    @property
    def is_kit_order(self) -> bool:
        return (self.shipping_preference or "").strip().lower() == (
            ShippingPreference.SHIPPING_KIT.value.lower()
        )

    @property
    def inbound_number(self) -> Optional[str]:
        return self.inbound_tracking_number or self.tracking_number


# API Request/Response Models


class OrderCreateRequest(BaseModel):
    """Request body for submitting a new order."""

    customer_id: Optional[str] = Field(default=None, description="Customer ID")
    shipping_preference: ShippingPreference = Field(
        description="How the device will be sent in"
    )
    shipping_info: Optional[ShippingInfo] = None
    promo_code: Optional[str] = Field(default=None, description="Promo code to redeem")


class OrderUpdateRequest(BaseModel):
    """Request body for an operator update."""

    status: Optional[str] = Field(default=None, description="New order status")
    note: Optional[str] = Field(default=None, description="Note to append to the log")


class VoidLabelRequest(BaseModel):
    labels: list[str] = Field(description="Label slots to void")


class VoidResult(BaseModel):
    """Outcome of voiding one label slot"""

    slot: Optional[str] = None
    label_id: Optional[str] = None
    approved: bool = False
    message: Optional[str] = None
    error: bool = False


class VoidLabelResponse(BaseModel):
    order_id: str
    results: list[VoidResult]
    status: str


class LabelCreateRequest(BaseModel):
    """Request body for generating a label into one slot."""

    carrier_code: str = Field(default="stamps_com", description="ShipStation carrier")
    service_code: str = Field(default="usps_first_class_mail", description="Service")
    package_code: str = Field(default="package", description="Package type")
    weight_oz: float = Field(default=8, gt=0, description="Weight in ounces")
    business_address: dict[str, Any] = Field(
        description="ShipStation address of the buyback warehouse"
    )
    customer_address: Optional[dict[str, Any]] = Field(
        default=None, description="ShipStation address; defaults to shipping_info"
    )
    test_label: bool = Field(default=False, description="Create a test label")
