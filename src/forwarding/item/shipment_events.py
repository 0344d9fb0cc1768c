"""Item reactions to shipment milestones.

Creation and cancellation link and unlink items; dispatch marks every linked
item ``shipped`` and delivery marks it ``delivered``.
"""

import json

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.shipment.events import ShipmentCancelled, ShipmentCreated, ShipmentDelivered, ShipmentDispatched

logger = structlog.get_logger(__name__)


def _items(raw_ids: str) -> list[OrderItem]:
    repo = current_domain.repository_for(OrderItem)
    return [repo.get(item_id) for item_id in json.loads(raw_ids)]


@forwarding.event_handler(part_of=OrderItem, stream_category="forwarding::shipment")
class ItemShipmentEventHandler:
    @handle(ShipmentCreated)
    def on_shipment_created(self, event: ShipmentCreated) -> None:
        repo = current_domain.repository_for(OrderItem)
        for item in _items(event.item_ids):
            item.assign_consolidation_group(str(event.shipment_id))
            repo.add(item)

    @handle(ShipmentCancelled)
    def on_shipment_cancelled(self, event: ShipmentCancelled) -> None:
        repo = current_domain.repository_for(OrderItem)
        for item in _items(event.item_ids):
            if str(item.consolidation_group_id) == str(event.shipment_id):
                item.assign_consolidation_group(None)
                repo.add(item)

    @handle(ShipmentDispatched)
    def on_shipment_dispatched(self, event: ShipmentDispatched) -> None:
        repo = current_domain.repository_for(OrderItem)
        for item in _items(event.item_ids):
            if ItemStatus(item.status) != ItemStatus.QUALITY_CHECK_PASSED:
                logger.warning(
                    "Dispatched item was not ready to ship",
                    item_id=str(item.id),
                    status=item.status,
                    shipment_id=str(event.shipment_id),
                )
                continue
            item.mark_shipped(str(event.shipment_id))
            repo.add(item)

    @handle(ShipmentDelivered)
    def on_shipment_delivered(self, event: ShipmentDelivered) -> None:
        repo = current_domain.repository_for(OrderItem)
        for item in _items(event.item_ids):
            if ItemStatus(item.status) != ItemStatus.SHIPPED:
                logger.warning(
                    "Delivered item was not in transit",
                    item_id=str(item.id),
                    status=item.status,
                    shipment_id=str(event.shipment_id),
                )
                continue
            item.mark_delivered()
            repo.add(item)
