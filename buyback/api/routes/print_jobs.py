"""
Bulk kit-print API routes.
"""

from fastapi import APIRouter

from buyback.api.errors import check_db_available, http_error
from buyback.errors import BuybackError
from buyback.models.print_job import PrintBatch, PrintBatchRequest
from buyback.services.sequences import SequenceAllocator

router = APIRouter()


@router.post("/print-jobs", response_model=PrintBatch, status_code=201)
def reserve_print_job(request: PrintBatchRequest) -> PrintBatch:
    """
    Reserve the next bulk-print batch for a set of orders.

    Returns the batch number, the ``bulk-print-{n}`` folder name and the job ID.
    """
    check_db_available()

    try:
        return SequenceAllocator().reserve_print_batch(request.order_ids)
    except BuybackError as e:
        raise http_error(e)
