"""Order reactions to item revaluations.

An approved revision moves the order's current total by the cost impact of
the new price; ``variance_amount`` follows.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item.events import ItemRevalued
from forwarding.order.order import Order

logger = structlog.get_logger(__name__)


@forwarding.event_handler(part_of=Order, stream_category="forwarding::order_item")
class OrderItemEventHandler:
    @handle(ItemRevalued)
    def on_item_revalued(self, event: ItemRevalued) -> None:
        delta = round((event.current_price - event.previous_price) * event.quantity, 2)
        if delta == 0:
            return
        repo = current_domain.repository_for(Order)
        order = repo.get(str(event.order_id))
        order.adjust_total(str(event.item_id), delta)
        repo.add(order)
        logger.info(
            "Order total adjusted",
            order_id=str(order.id),
            item_id=str(event.item_id),
            delta=delta,
            current_order_total=order.current_order_total,
        )
