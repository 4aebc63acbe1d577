"""
Label generation and voiding.

A label's void lifecycle only moves forward:
active -> pending_void -> voided | void_denied. The pending_void claim is
committed through the record store before the provider is called, so two
concurrent void requests for the same label cannot both reach the provider.
"""

import logging
from typing import Any, Optional

from buyback.errors import (
    BuybackError,
    CredentialsMissing,
    StateConflict,
    ValidationError,
)
from buyback.models.order import (
    LabelCreateRequest,
    LabelRecord,
    LabelSlot,
    Order,
    VoidLabelResponse,
    VoidResult,
    VoidStatus,
    can_move_void_status,
)
from buyback.models.status import OrderStatus, canonical_status
from buyback.notifications import LoggingNotifier, Notifier, dispatch, plan_notifications
from buyback.services.record_store import ApplyOptions, OrderRecordStore
from buyback.tracking.providers import ShipEngineClient, ShipStationClient
from buyback.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

VOID_IN_PROGRESS = "void already in progress"


class _VoidSettled(Exception):
    """The slot needs no provider call; carries the result to report."""

    def __init__(self, result: VoidResult):
        super().__init__(result.message)
        self.result = result


class LabelService:
    """Creates labels through ShipStation and voids them through ShipEngine."""

    def __init__(
        self,
        record_store: Optional[OrderRecordStore] = None,
        shipengine: Optional[ShipEngineClient] = None,
        shipstation: Optional[ShipStationClient] = None,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.clock = clock or SystemClock()
        self.record_store = record_store or OrderRecordStore(clock=self.clock)
        self._shipengine = shipengine
        self._shipstation = shipstation
        self.notifier = notifier or LoggingNotifier()

    @property
    def shipengine(self) -> ShipEngineClient:
        if self._shipengine is None:
            self._shipengine = ShipEngineClient.from_config()
        if self._shipengine is None:
            raise CredentialsMissing(
                "ShipEngine API key not configured. Please set SHIPENGINE_KEY."
            )
        return self._shipengine

    @property
    def shipstation(self) -> ShipStationClient:
        if self._shipstation is None:
            self._shipstation = ShipStationClient.from_config()
        if self._shipstation is None:
            raise CredentialsMissing(
                "ShipStation API credentials not configured. "
                "Please set SHIPSTATION_KEY and SHIPSTATION_SECRET."
            )
        return self._shipstation

    # =========================================================================
    # Voiding
    # =========================================================================

    def void_labels(
        self, order_id: str, slots: list[str], reason: str = "manual"
    ) -> VoidLabelResponse:
        """
        Void the labels in the selected slots.

        Args:
            order_id: Order owning the labels
            slots: Label slots to void
            reason: ``manual`` or ``automatic`` (recorded in the activity log)

        Returns:
            One VoidResult per slot and the order status afterwards

        Raises:
            ValidationError: No slots selected
            NotFound: Unknown order
            CredentialsMissing: ShipEngine not configured
        """
        selected = list(dict.fromkeys(s.strip() for s in slots or [] if s and s.strip()))
        if not selected:
            raise ValidationError("At least one label must be selected for voiding.")

        client = self.shipengine
        before = self.record_store.get(order_id)
        results = [self._void_slot(client, order_id, slot, reason) for slot in selected]

        after = self.record_store.get(order_id)
        dispatch(self.notifier, plan_notifications(before, after))
        return VoidLabelResponse(order_id=order_id, results=results, status=after.status)

    def _void_slot(
        self, client: ShipEngineClient, order_id: str, slot: str, reason: str
    ) -> VoidResult:
        claimed: dict[str, Any] = {}

        def claim(current: Order) -> dict[str, Any]:
            label = current.labels.get(slot)
            if label is None or not label.id:
                raise _VoidSettled(
                    VoidResult(
                        slot=slot,
                        approved=False,
                        message="No label identifier found for selection.",
                    )
                )
            if label.void_status == VoidStatus.VOIDED:
                raise _VoidSettled(
                    VoidResult(
                        slot=slot,
                        label_id=label.id,
                        approved=True,
                        message=label.void_message or "Label has already been voided.",
                    )
                )
            if label.void_status == VoidStatus.VOID_DENIED:
                raise _VoidSettled(
                    VoidResult(
                        slot=slot,
                        label_id=label.id,
                        approved=False,
                        message=label.void_message
                        or "Label void request was previously denied.",
                    )
                )
            if label.void_status == VoidStatus.PENDING_VOID and not label.void_error:
                raise StateConflict(VOID_IN_PROGRESS, detail={"slot": slot})

            claimed["label_id"] = label.id
            return self._with_label(
                current,
                slot,
                void_status=VoidStatus.PENDING_VOID,
                void_error=None,
                last_void_attempt_at=self.clock.now(),
            )

        try:
            self.record_store.apply(
                order_id,
                claim,
                ApplyOptions(
                    log_entries=[
                        {
                            "type": "label_void",
                            "message": f"Void requested for {slot} label",
                            "metadata": {"slot": slot, "reason": reason},
                        }
                    ]
                ),
            )
        except _VoidSettled as settled:
            return settled.result
        except StateConflict as e:
            return VoidResult(slot=slot, approved=False, message=e.message, error=True)

        label_id = claimed["label_id"]
        try:
            response = client.void_label(label_id)
        except BuybackError as e:
            logger.warning(
                "Void of label %s on order %s failed: %s",
                label_id,
                order_id,
                e.message,
                extra={"json_fields": {"order_id": order_id, "slot": slot}},
            )
            self.record_store.apply(
                order_id,
                lambda current: self._with_label(
                    current, slot, void_error=e.message, void_message=e.message
                ),
                ApplyOptions(
                    log_entries=[
                        {
                            "type": "label_void",
                            "message": f"Void of {slot} label failed: {e.message}",
                            "metadata": {"slot": slot, "label_id": label_id},
                        }
                    ]
                ),
            )
            return VoidResult(
                slot=slot, label_id=label_id, approved=False, message=e.message, error=True
            )

        approved = response["approved"]
        message = response["message"] or None

        def settle(current: Order) -> dict[str, Any]:
            now = self.clock.now()
            fields = self._with_label(
                current,
                slot,
                void_status=VoidStatus.VOIDED if approved else VoidStatus.VOID_DENIED,
                status="voided" if approved else "void_denied",
                void_message=message,
                void_error=None,
                voided_at=now if approved else current.labels[slot].voided_at,
            )
            if approved:
                fields["status"] = OrderStatus.CANCELLED.value
            return fields

        self.record_store.apply(
            order_id,
            settle,
            ApplyOptions(
                log_entries=[
                    {
                        "type": "label_void",
                        "message": (
                            f"{slot.capitalize()} label voided"
                            if approved
                            else f"Void denied for {slot} label"
                        ),
                        "metadata": {"slot": slot, "label_id": label_id},
                    }
                ]
            ),
        )
        logger.info(
            "%s label %s for order %s (%s)",
            "Voided" if approved else "Void denied for",
            label_id,
            order_id,
            reason,
        )
        return VoidResult(slot=slot, label_id=label_id, approved=approved, message=message)

    @staticmethod
    def _with_label(current: Order, slot: str, **changes) -> dict[str, Any]:
        """Fields replacing one label slot with an updated copy."""
        labels = dict(current.labels)
        label = labels[slot]
        target = changes.get("void_status")
        if target is not None and not can_move_void_status(label.void_status, target):
            raise StateConflict(
                f"Label {slot} cannot move from {label.void_status} to {target}",
                detail={"slot": slot, "void_status": label.void_status},
            )
        labels[slot] = label.model_copy(update=changes)
        return {"labels": labels}

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_label(
        self, order_id: str, slot: str, request: LabelCreateRequest
    ) -> Order:
        """
        Create a label through ShipStation and store it in ``slot``.

        Raises:
            ValidationError: Unknown slot, or no destination address
            StateConflict: The slot already holds a label that is not voided
            NotFound: Unknown order
            CredentialsMissing: ShipStation not configured
        """
        try:
            label_slot = LabelSlot(slot)
        except ValueError:
            raise ValidationError(f"Unknown label slot {slot!r}")
        if label_slot == LabelSlot.PRIMARY:
            raise ValidationError("Labels cannot be generated into the primary slot")

        client = self.shipstation
        order = self.record_store.get(order_id)
        self._ensure_slot_free(order, label_slot)

        customer = request.customer_address or self._customer_address(order)
        # Inbound labels carry the device from the customer to the warehouse
        if label_slot in (LabelSlot.INBOUND, LabelSlot.EMAIL):
            ship_from, ship_to = customer, request.business_address
        else:
            ship_from, ship_to = request.business_address, customer
        response = client.create_label(
            {
                "carrierCode": request.carrier_code,
                "serviceCode": request.service_code,
                "packageCode": request.package_code,
                "shipDate": self.clock.now().date().isoformat(),
                "weight": {"value": request.weight_oz, "units": "ounces"},
                "shipFrom": ship_from,
                "shipTo": ship_to,
                "testLabel": request.test_label,
            }
        )

        label_id = response.get("shipmentId") or response.get("labelId")
        label = LabelRecord(
            id=str(label_id) if label_id is not None else None,
            tracking_number=response.get("trackingNumber"),
            carrier_code=request.carrier_code,
            service_code=request.service_code,
            generated_at=self.clock.now(),
        )

        def store(current: Order) -> dict[str, Any]:
            self._ensure_slot_free(current, label_slot)
            fields: dict[str, Any] = {"labels": {**current.labels, slot: label}}

            if label_slot == LabelSlot.OUTBOUND:
                fields["outbound_tracking_number"] = label.tracking_number
                fields["outbound_carrier_code"] = label.carrier_code
            elif label_slot in (LabelSlot.INBOUND, LabelSlot.EMAIL):
                fields["inbound_tracking_number"] = label.tracking_number
                fields["inbound_carrier_code"] = label.carrier_code

            if current.label_generated_at is None:
                fields["label_generated_at"] = label.generated_at

            status = canonical_status(current.status)
            if label_slot == LabelSlot.EMAIL and status == OrderStatus.ORDER_PENDING:
                fields["status"] = OrderStatus.LABEL_GENERATED.value
            elif label_slot == LabelSlot.OUTBOUND and status in (
                OrderStatus.ORDER_PENDING,
                OrderStatus.SHIPPING_KIT_REQUESTED,
            ):
                fields["status"] = OrderStatus.KIT_SENT.value
            return fields

        updated = self.record_store.apply(
            order_id,
            store,
            ApplyOptions(
                log_entries=[
                    {
                        "type": "label",
                        "message": f"{slot.capitalize()} label generated",
                        "metadata": {
                            "slot": slot,
                            "label_id": label.id,
                            "tracking_number": label.tracking_number,
                        },
                    }
                ]
            ),
        )
        logger.info(
            "Generated %s label %s for order %s",
            slot,
            label.id,
            order_id,
            extra={"json_fields": {"order_id": order_id, "slot": slot}},
        )
        return updated

    @staticmethod
    def _ensure_slot_free(order: Order, slot: LabelSlot):
        existing = order.labels.get(slot.value)
        if existing is not None and existing.id and existing.void_status != VoidStatus.VOIDED:
            raise StateConflict(
                f"Order {order.id} already has a {slot.value} label",
                detail={"label_id": existing.id, "void_status": existing.void_status},
            )

    @staticmethod
    def _customer_address(order: Order) -> dict[str, Any]:
        info = order.shipping_info
        if info is None or not info.street_address:
            raise ValidationError(
                "Shipping information is required to generate a label."
            )
        return {
            "name": info.full_name,
            "street1": info.street_address,
            "city": info.city,
            "state": info.state,
            "postalCode": info.zip_code,
            "country": "US",
        }
