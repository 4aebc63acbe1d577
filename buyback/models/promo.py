from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class PromoCode(BaseModel):
    """Promo code seeded out-of-band and decremented on redemption"""

    code: str = Field(description="Normalised (upper-case) code")
    uses_left: int = Field(default=0, description="Remaining redemptions")
    max_uses: Optional[int] = Field(default=None, description="Original allowance")
    bonus_amount: Optional[Decimal] = Field(
        default=None, description="Payout bonus in USD"
    )
    requires_email_label: bool = Field(
        default=False, description="Only valid with the email label option"
    )
    description: str = Field(default="", description="Customer-facing description")
    last_redeemed_at: Optional[datetime] = None
    version: int = Field(default=0, description="Optimistic concurrency version")


class Redemption(BaseModel):
    """One redemption of a promo code, keyed by order ID"""

    code: str
    order_id: str
    bonus_amount: Decimal
    shipping_preference: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PromoRedemptionResult(BaseModel):
    """What a successful (or replayed) redemption granted"""

    code: str
    order_id: str
    amount: Decimal
    uses_left: int
    max_uses: int
    requires_email_label: bool
    replayed: bool = Field(
        default=False, description="True when the order had already redeemed the code"
    )


class PromoCodeSnapshot(BaseModel):
    """Usage and eligibility view returned by GET /promo-codes/{code}"""

    code: str
    uses_left: int
    max_uses: int
    bonus_amount: Decimal
    requires_email_label: bool
    description: str = ""
