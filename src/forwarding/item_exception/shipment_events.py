"""Exceptions raised for every item of a shipment the carrier flagged.

A later carrier update that shows the shipment moving again closes the
exceptions still waiting on a customer, so the deadline sweep never applies
a replacement or refund to goods that arrived after all.
"""

import json

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item_exception.detection import detect
from forwarding.item_exception.exception import DetectedBy, ExceptionType, ItemException
from forwarding.shipment.events import ShipmentExceptionCleared, ShipmentExceptionFlagged
from forwarding.shipment.shipment import ExceptionStatus

logger = structlog.get_logger(__name__)

_EXCEPTION_TYPES = {
    ExceptionStatus.CUSTOMS_HOLD.value: ExceptionType.CUSTOMS_ISSUE,
    ExceptionStatus.DAMAGED_IN_TRANSIT.value: ExceptionType.DAMAGED_IN_TRANSIT,
}

# Damage stays with the goods; holds and missed deliveries pass
_CLEARABLE = [ExceptionType.CUSTOMS_ISSUE.value, ExceptionType.DELIVERY_FAILED.value]


@forwarding.event_handler(part_of=ItemException, stream_category="forwarding::shipment")
class ShipmentExceptionEventHandler:
    @handle(ShipmentExceptionFlagged)
    def on_shipment_exception_flagged(self, event: ShipmentExceptionFlagged) -> None:
        exception_type = _EXCEPTION_TYPES.get(event.exception_status, ExceptionType.DELIVERY_FAILED)
        for item_id in json.loads(event.item_ids):
            detect(
                item_id,
                exception_type,
                DetectedBy.AUTOMATION,
                description=event.description or f"Carrier reported {event.exception_status}",
                shipment_id=str(event.shipment_id),
            )

    @handle(ShipmentExceptionCleared)
    def on_shipment_exception_cleared(self, event: ShipmentExceptionCleared) -> None:
        repo = current_domain.repository_for(ItemException)
        for exc in repo.open_for_shipment(str(event.shipment_id), _CLEARABLE):
            exc.clear(f"Carrier reported {event.status} after {event.previous_exception_status}")
            repo.add(exc)
            logger.info(
                "Shipment exception cleared",
                exception_id=str(exc.id),
                shipment_id=str(event.shipment_id),
                status=event.status,
            )
