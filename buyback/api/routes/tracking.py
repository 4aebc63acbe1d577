"""
Tracking refresh API routes.
"""

import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from buyback.api.errors import check_db_available, http_error, internal_error
from buyback.db import UnitOfWork
from buyback.errors import BuybackError
from buyback.models.tracking import RefreshResult, RefreshTrackingRequest
from buyback.tracking.service import TrackingService

logger = logging.getLogger(__name__)

router = APIRouter()


def _previous_status(order_id: str) -> str | None:
    """Status stored before a failed refresh, reported back to the caller."""
    try:
        with UnitOfWork() as uow:
            found = uow.orders.read(order_id)
    except SQLAlchemyError as e:
        logger.warning("Could not read status of order %s: %s", order_id, e)
        return None
    return found[0].status if found else None


@router.post("/refresh-tracking", response_model=RefreshResult)
def refresh_tracking(request: RefreshTrackingRequest) -> RefreshResult:
    """
    Refresh carrier tracking for an order and apply the status transition.

    A refresh inside the cooldown window (and not forced) or on an order that
    is already received returns ``skipped=true`` without calling a carrier.

    Args:
        request: Order ID and force flag

    Returns:
        RefreshResult with the new and previous status

    Raises:
        400: No tracking number
        404: Order not found
        500: Tracking credentials not configured
        502: Carrier API failure
    """
    check_db_available()

    try:
        return TrackingService().refresh(request.order_id, force=request.force)
    except BuybackError as e:
        raise http_error(e, previous_status=_previous_status(request.order_id))
    except Exception as e:
        raise internal_error("refresh tracking", e)
