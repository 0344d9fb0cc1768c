"""Customer notifications — one "notify customer" request per visible transition.

Item status changes, revisions awaiting a decision, new exceptions, dispatch
and delivery are handed to the notifier port. A rejected request is logged and
never rolls back the transition that caused it.
"""

import json

import structlog
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item.events import ItemStatusChanged
from forwarding.item_exception.events import ExceptionReported
from forwarding.notifier import get_notifier
from forwarding.notifier.port import NotificationType
from forwarding.order.order import Order
from forwarding.revision.events import RevisionOpened
from forwarding.shipment.events import ShipmentDelivered, ShipmentDispatched

logger = structlog.get_logger(__name__)


def notify_customer(customer_id: str, event_type: NotificationType, payload: dict) -> bool:
    result = get_notifier().notify(customer_id, event_type, payload)
    if result.get("status") != "accepted":
        logger.warning(
            "Customer notification rejected",
            customer_id=customer_id,
            event_type=event_type.value,
            error=result.get("error"),
        )
        return False
    logger.info(
        "Customer notified",
        customer_id=customer_id,
        event_type=event_type.value,
        request_id=result.get("request_id"),
    )
    return True


@forwarding.event_handler(part_of=Order, stream_category="forwarding::order_item")
class ItemNotificationHandler:
    @handle(ItemStatusChanged)
    def on_item_status_changed(self, event: ItemStatusChanged) -> None:
        notify_customer(
            str(event.customer_id),
            NotificationType.STATUS_CHANGED,
            {
                "order_id": str(event.order_id),
                "item_id": str(event.item_id),
                "from_status": event.from_status,
                "to_status": event.to_status,
                "reason": event.reason,
            },
        )


@forwarding.event_handler(part_of=Order, stream_category="forwarding::revision")
class RevisionNotificationHandler:
    @handle(RevisionOpened)
    def on_revision_opened(self, event: RevisionOpened) -> None:
        notify_customer(
            str(event.customer_id),
            NotificationType.APPROVAL_NEEDED,
            {
                "revision_id": str(event.revision_id),
                "item_id": str(event.item_id),
                "change_type": event.change_type,
                "previous_price": event.previous_price,
                "new_price": event.new_price,
                "previous_weight": event.previous_weight,
                "new_weight": event.new_weight,
                "total_cost_impact": event.total_cost_impact,
                "respond_by": event.customer_response_deadline.isoformat(),
            },
        )


@forwarding.event_handler(part_of=Order, stream_category="forwarding::item_exception")
class ExceptionNotificationHandler:
    @handle(ExceptionReported)
    def on_exception_reported(self, event: ExceptionReported) -> None:
        notify_customer(
            str(event.customer_id),
            NotificationType.EXCEPTION_RAISED,
            {
                "exception_id": str(event.exception_id),
                "item_id": str(event.item_id),
                "exception_type": event.exception_type,
                "severity": event.severity,
                "available_resolutions": json.loads(event.available_resolutions),
                "recommended_resolution": event.recommended_resolution,
                "respond_by": event.customer_response_deadline.isoformat(),
            },
        )


@forwarding.event_handler(part_of=Order, stream_category="forwarding::shipment")
class ShipmentNotificationHandler:
    @handle(ShipmentDispatched)
    def on_shipment_dispatched(self, event: ShipmentDispatched) -> None:
        notify_customer(
            str(event.customer_id),
            NotificationType.SHIPMENT_DISPATCHED,
            {
                "order_id": str(event.order_id),
                "shipment_id": str(event.shipment_id),
                "item_ids": json.loads(event.item_ids),
                "carrier": event.international_carrier,
                "tracking_number": event.international_tracking_number,
            },
        )

    @handle(ShipmentDelivered)
    def on_shipment_delivered(self, event: ShipmentDelivered) -> None:
        notify_customer(
            str(event.customer_id),
            NotificationType.DELIVERED,
            {
                "order_id": str(event.order_id),
                "shipment_id": str(event.shipment_id),
                "item_ids": json.loads(event.item_ids),
                "delivered_at": event.delivered_at.isoformat(),
            },
        )
