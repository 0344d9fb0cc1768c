"""Order counter recomputation — command, handler and item-status reaction.

Counters are never incremented. Every recompute re-reads the order's items
and rewrites all counters, so running it twice, or concurrently with further
item writes, converges on the same answer; the last recompute after a burst
of writes is authoritative.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item.events import ItemStatusChanged
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.order.order import Order

logger = structlog.get_logger(__name__)


def recompute_counters(order_id: str) -> Order:
    """Rewrite the order's counters from the current statuses of its items."""
    order_repo = current_domain.repository_for(Order)
    order = order_repo.get(order_id)
    items = current_domain.repository_for(OrderItem).for_order(order_id)
    changed = order.apply_item_statuses([ItemStatus(item.status) for item in items])
    order_repo.add(order)

    if changed:
        logger.info(
            "Order counters recomputed",
            order_id=str(order_id),
            status=order.status,
            total=order.counters.total_items,
            shipped=order.counters.shipped_items,
            delivered=order.counters.delivered_items,
        )
    return order


@forwarding.command(part_of="Order")
class RecomputeOrderCounters:
    """Recompute an order's item counters on demand."""

    order_id = Identifier(required=True)


@forwarding.command_handler(part_of=Order)
class OrderCountersHandler:
    @handle(RecomputeOrderCounters)
    def recompute(self, command):
        order = recompute_counters(command.order_id)
        return order.counters.to_dict()


@forwarding.event_handler(part_of=Order, stream_category="forwarding::order_item")
class ItemStatusCounterHandler:
    """Recomputes counters right after every committed item status change."""

    @handle(ItemStatusChanged)
    def on_item_status_changed(self, event: ItemStatusChanged) -> None:
        recompute_counters(str(event.order_id))
