"""Order reactions to exception resolutions that pay money back."""

from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item_exception.events import ExceptionResolved
from forwarding.item_exception.exception import Resolution
from forwarding.order.order import Order

REFUNDING_RESOLUTIONS = {Resolution.REFUND.value, Resolution.PARTIAL_REFUND_KEEP.value}


@forwarding.event_handler(part_of=Order, stream_category="forwarding::item_exception")
class OrderExceptionEventHandler:
    @handle(ExceptionResolved)
    def on_exception_resolved(self, event: ExceptionResolved) -> None:
        if event.resolution_method not in REFUNDING_RESOLUTIONS or not event.resolution_amount:
            return
        repo = current_domain.repository_for(Order)
        order = repo.get(str(event.order_id))
        order.record_refund(str(event.item_id), event.resolution_amount)
        repo.add(order)
