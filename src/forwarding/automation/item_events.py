"""Automation reactions to item lifecycle events.

Placement requests turn into ``order_placement`` tasks; a recorded seller
order starts the first ``tracking_scrape`` so price and weight can be
compared against the quote.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.automation.runner import enqueue_task
from forwarding.automation.task import AutomationTask, TaskType
from forwarding.domain import forwarding
from forwarding.item.events import ItemPlacementRequested, SellerOrderRecorded
from forwarding.item.item import OrderItem

logger = structlog.get_logger(__name__)


@forwarding.event_handler(part_of=AutomationTask, stream_category="forwarding::order_item")
class AutomationItemEventHandler:
    @handle(ItemPlacementRequested)
    def on_placement_requested(self, event: ItemPlacementRequested) -> None:
        task = enqueue_task(
            str(event.item_id),
            str(event.order_id),
            TaskType.ORDER_PLACEMENT,
            {
                "seller_platform": event.seller_platform,
                "product_url": event.product_url,
                "quantity": event.quantity,
            },
        )
        logger.info(
            "Order placement requested",
            item_id=str(event.item_id),
            task_id=str(task.id),
            is_replacement=event.is_replacement,
        )

    @handle(SellerOrderRecorded)
    def on_seller_order_recorded(self, event: SellerOrderRecorded) -> None:
        item = current_domain.repository_for(OrderItem).get(str(event.item_id))
        enqueue_task(
            str(event.item_id),
            str(event.order_id),
            TaskType.TRACKING_SCRAPE,
            {
                "seller_platform": item.seller_platform,
                "seller_order_id": event.seller_order_id,
                "product_url": item.product_url,
                "tracking_id": event.seller_tracking_id,
            },
        )
