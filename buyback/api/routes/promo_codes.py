"""
Promo code API routes.
"""

from fastapi import APIRouter

from buyback.api.errors import check_db_available, http_error
from buyback.errors import BuybackError
from buyback.models.promo import PromoCodeSnapshot
from buyback.services.sequences import SequenceAllocator

router = APIRouter()


@router.get("/promo-codes/{code}", response_model=PromoCodeSnapshot)
def get_promo_code(code: str) -> PromoCodeSnapshot:
    """Usage and eligibility of a promo code (404 when unknown)."""
    check_db_available()

    try:
        return SequenceAllocator().promo_snapshot(code)
    except BuybackError as e:
        raise http_error(e)
