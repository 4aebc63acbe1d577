"""
Buyback data models.

This package contains all Pydantic models for the buyback order core.
"""

# Order models
from buyback.models.order import (
    ActivityLogEntry,
    KitTrackingStatus,
    LabelRecord,
    LabelSlot,
    Order,
    ShippingInfo,
    VoidStatus,
)

# Print job models
from buyback.models.print_job import PrintBatch, PrintJob

# Promo models
from buyback.models.promo import (
    PromoCode,
    PromoCodeSnapshot,
    PromoRedemptionResult,
    Redemption,
)

# Status vocabulary
from buyback.models.status import (
    Direction,
    OrderStatus,
    ShippingPreference,
    canonical_status,
)

# Tracking models
from buyback.models.tracking import (
    CanonicalTrackingStatus,
    RefreshResult,
    TrackingSnapshot,
    TrackingUpdate,
)

__all__ = [
    # Order models
    "ActivityLogEntry",
    "KitTrackingStatus",
    "LabelRecord",
    "LabelSlot",
    "Order",
    "ShippingInfo",
    "VoidStatus",
    # Print job models
    "PrintBatch",
    "PrintJob",
    # Promo models
    "PromoCode",
    "PromoCodeSnapshot",
    "PromoRedemptionResult",
    "Redemption",
    # Status vocabulary
    "Direction",
    "OrderStatus",
    "ShippingPreference",
    "canonical_status",
    # Tracking models
    "CanonicalTrackingStatus",
    "RefreshResult",
    "TrackingSnapshot",
    "TrackingUpdate",
]
