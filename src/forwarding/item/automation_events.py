"""Item reactions to automation results.

A completed order placement advances the item to ``seller_order_placed``.
Tracking ids picked up by scrapes or status checks are copied onto the item;
scraped price and weight are never applied here (see revisions).
"""

import json

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.automation.events import TaskSucceeded
from forwarding.automation.task import TaskType
from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem

logger = structlog.get_logger(__name__)

_TRACKING_SOURCES = {TaskType.TRACKING_SCRAPE.value, TaskType.STATUS_CHECK.value}


@forwarding.event_handler(part_of=OrderItem, stream_category="forwarding::automation_task")
class ItemAutomationEventHandler:
    @handle(TaskSucceeded)
    def on_task_succeeded(self, event: TaskSucceeded) -> None:
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(str(event.item_id))
        result = json.loads(event.result)

        if event.task_type == TaskType.ORDER_PLACEMENT.value:
            if ItemStatus(item.status) != ItemStatus.PENDING_ORDER_PLACEMENT:
                logger.warning(
                    "Placement result for item not awaiting placement",
                    item_id=str(item.id),
                    status=item.status,
                    task_id=str(event.task_id),
                )
                return
            item.record_seller_order(
                result["seller_order_id"],
                seller_order_date=result.get("seller_order_date"),
                seller_tracking_id=result.get("tracking_id"),
            )
            repo.add(item)
            logger.info(
                "Seller order recorded",
                item_id=str(item.id),
                seller_order_id=result["seller_order_id"],
                resolved_by=event.resolved_by,
            )
            return

        tracking_id = result.get("tracking_id")
        if event.task_type in _TRACKING_SOURCES and tracking_id and tracking_id != item.seller_tracking_id:
            if item.is_terminal:
                return
            item.record_seller_tracking(tracking_id)
            repo.add(item)
