"""Item reactions to exception resolutions.

| resolution            | item outcome                                      |
|-----------------------|---------------------------------------------------|
| refund                | ``refunded``                                      |
| store_credit, cancel  | ``cancelled``                                     |
| partial_refund_keep   | stays in its lifecycle; a failed QC is accepted   |
| replacement,          | back to ``pending_order_placement``; a unit that  |
| alternative_source    | already shipped is ``exchanged`` for a new item   |

Items that reached a terminal state in the meantime are left untouched.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.item_exception.events import ExceptionResolved
from forwarding.item_exception.exception import Resolution

logger = structlog.get_logger(__name__)


@forwarding.event_handler(part_of=OrderItem, stream_category="forwarding::item_exception")
class ItemExceptionEventHandler:
    @handle(ExceptionResolved)
    def on_exception_resolved(self, event: ExceptionResolved) -> None:
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(str(event.item_id))
        if item.is_terminal:
            logger.warning(
                "Resolution not applied to terminal item",
                item_id=str(item.id),
                status=item.status,
                exception_id=str(event.exception_id),
                resolution=event.resolution_method,
            )
            return

        method = Resolution(event.resolution_method)
        reason = f"{event.exception_type} resolved by {method.value}"
        if method == Resolution.REFUND:
            item.refund(event.resolution_amount, reason)
        elif method in (Resolution.STORE_CREDIT, Resolution.CANCEL):
            item.cancel(reason)
        elif method == Resolution.PARTIAL_REFUND_KEEP:
            item.record_partial_refund(event.resolution_amount)
        elif ItemStatus(item.status) == ItemStatus.SHIPPED:
            item.mark_exchanged(reason)
            replacement = OrderItem.replacement_for(item)
            repo.add(replacement)
            logger.info("Replacement item created", item_id=str(item.id), replacement_id=str(replacement.id))
        else:
            item.restart_placement(reason)

        repo.add(item)
