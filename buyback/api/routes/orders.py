"""
Order API routes.

Create orders (order number allocation and promo redemption), read them,
apply operator updates, and manage their shipping labels.
"""

from fastapi import APIRouter

from buyback.api.errors import check_db_available, http_error, internal_error
from buyback.errors import BuybackError, ValidationError
from buyback.labels.service import LabelService
from buyback.models.order import (
    LabelCreateRequest,
    Order,
    OrderCreateRequest,
    OrderUpdateRequest,
    VoidLabelRequest,
    VoidLabelResponse,
)
from buyback.models.status import OrderStatus, ShippingPreference, canonical_status
from buyback.services.record_store import ApplyOptions, OrderRecordStore
from buyback.services.sequences import SequenceAllocator

router = APIRouter()


@router.post("/orders", response_model=Order, status_code=201)
def create_order(request: OrderCreateRequest) -> Order:
    """
    Submit a new order.

    Allocates the next order number and, when a promo code is given, redeems
    it before anything is written. A rejected promo code leaves no order behind.

    Raises:
        400: Promo code exhausted or not valid for the shipping option
        404: Unknown promo code
    """
    check_db_available()

    try:
        allocator = SequenceAllocator()
        order_id = allocator.next_order_number()

        promo = None
        if request.promo_code:
            promo = allocator.redeem_promo(
                request.promo_code,
                order_id,
                request.shipping_preference.value,
                customer=request.shipping_info,
            )

        status = (
            OrderStatus.SHIPPING_KIT_REQUESTED
            if request.shipping_preference == ShippingPreference.SHIPPING_KIT
            else OrderStatus.ORDER_PENDING
        )
        order = Order(
            id=order_id,
            customer_id=request.customer_id,
            status=status.value,
            shipping_preference=request.shipping_preference.value,
            shipping_info=request.shipping_info,
            promo_code=promo.code if promo else None,
            promo_bonus_amount=promo.amount if promo else None,
        )
        return OrderRecordStore().create(order)
    except BuybackError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("create order", e)


@router.get("/orders/{order_id}", response_model=Order)
def get_order(order_id: str) -> Order:
    """
    Get an order with its activity log.

    Raises:
        404: Order not found
    """
    check_db_available()

    try:
        return OrderRecordStore().get(order_id)
    except BuybackError as e:
        raise http_error(e)


@router.patch("/orders/{order_id}", response_model=Order)
def update_order(order_id: str, request: OrderUpdateRequest) -> Order:
    """
    Operator update of an order.

    Allows updating:
    - status: Any known spelling; stored in its canonical form
    - note: Appended to the activity log

    Raises:
        400: Unknown status, or nothing to update
        404: Order not found
    """
    check_db_available()

    try:
        fields = {}
        if request.status is not None:
            status = canonical_status(request.status)
            if status is None:
                raise ValidationError(
                    f"Invalid status: {request.status}",
                    detail={"valid": [s.value for s in OrderStatus]},
                )
            fields["status"] = status.value

        log_entries = []
        if request.note:
            log_entries.append({"type": "note", "message": request.note})

        if not fields and not log_entries:
            raise ValidationError("Nothing to update")

        return OrderRecordStore().apply(
            order_id, fields, ApplyOptions(log_entries=log_entries)
        )
    except BuybackError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("update order", e)


@router.post("/orders/{order_id}/void-label", response_model=VoidLabelResponse)
def void_label(order_id: str, request: VoidLabelRequest) -> VoidLabelResponse:
    """
    Void one or more of the order's labels.

    Each slot gets its own result; a slot that cannot be voided does not
    fail the request. Any approved void cancels the order.

    Raises:
        400: No labels selected
        404: Order not found
        500: ShipEngine not configured
    """
    check_db_available()

    try:
        return LabelService().void_labels(order_id, request.labels)
    except BuybackError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("void labels", e)


@router.post("/orders/{order_id}/labels/{slot}", response_model=Order, status_code=201)
def generate_label(order_id: str, slot: str, request: LabelCreateRequest) -> Order:
    """
    Generate a shipping label into one of the order's label slots.

    Raises:
        400: Unknown slot or missing address
        404: Order not found
        409: The slot already holds a label that is not voided
        502: ShipStation failure
    """
    check_db_available()

    try:
        return LabelService().generate_label(order_id, slot, request)
    except BuybackError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("generate label", e)
