"""
Promo code repository for database operations.

Handles promo code reads, the optimistic decrement of ``uses_left`` and the
per-order redemption records that make redemption idempotent.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, insert, select

from buyback.db.repositories.base import BaseRepository, ensure_utc
from buyback.db.tables import promo_codes, promo_redemptions
from buyback.models.promo import PromoCode, Redemption


class PromoCodeRepository(BaseRepository[PromoCode]):
    """Repository for PromoCode operations."""

    key_column = "code"

    @property
    def table(self) -> Table:
        return promo_codes

    def _row_to_model(self, row: Any) -> PromoCode:
        """Convert database row to PromoCode model."""
        return PromoCode(
            code=row.code,
            uses_left=row.uses_left or 0,
            max_uses=row.max_uses,
            bonus_amount=row.bonus_amount,
            requires_email_label=bool(row.requires_email_label),
            description=row.description or "",
            last_redeemed_at=ensure_utc(row.last_redeemed_at),
            version=row.version,
        )

    def _model_to_dict(self, model: PromoCode) -> dict:
        """Convert PromoCode model to database dict."""
        now = datetime.now(timezone.utc)
        return {
            "code": model.code,
            "uses_left": model.uses_left,
            "max_uses": model.max_uses,
            "bonus_amount": model.bonus_amount,
            "requires_email_label": model.requires_email_label,
            "description": model.description,
            "last_redeemed_at": model.last_redeemed_at,
            "version": model.version,
            "created_at": now,
            "updated_at": now,
        }

    def get_redemption(self, code: str, order_id: str) -> Redemption | None:
        """Get the redemption of ``code`` by ``order_id``, if any."""
        stmt = select(promo_redemptions).where(
            promo_redemptions.c.code == code,
            promo_redemptions.c.order_id == order_id,
        )
        row = self.session.execute(stmt).first()
        if row is None:
            return None

        return Redemption(
            code=row.code,
            order_id=row.order_id,
            bonus_amount=row.bonus_amount,
            shipping_preference=row.shipping_preference,
            customer_name=row.customer_name,
            customer_email=row.customer_email,
            created_at=ensure_utc(row.created_at),
        )

    def add_redemption(self, redemption: Redemption):
        """
        Record a redemption.

        The (code, order_id) unique constraint rejects a second redemption
        of the same code by the same order with an IntegrityError.
        """
        self.session.execute(
            insert(promo_redemptions).values(
                code=redemption.code,
                order_id=redemption.order_id,
                bonus_amount=redemption.bonus_amount,
                shipping_preference=redemption.shipping_preference,
                customer_name=redemption.customer_name,
                customer_email=redemption.customer_email,
                created_at=redemption.created_at,
            )
        )
