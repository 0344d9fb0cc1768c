"""Refund requests to the payment collaborator for settled exceptions."""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item_exception.events import ExceptionResolved
from forwarding.item_exception.exception import ItemException, Resolution
from forwarding.order.order import Order
from forwarding.refunds import get_refunds

logger = structlog.get_logger(__name__)

_REFUNDING = {Resolution.REFUND.value, Resolution.PARTIAL_REFUND_KEEP.value}


@forwarding.event_handler(part_of=ItemException)
class RefundRequestEventHandler:
    @handle(ExceptionResolved)
    def on_exception_resolved(self, event: ExceptionResolved) -> None:
        if event.resolution_method not in _REFUNDING or not event.resolution_amount:
            return

        order = current_domain.repository_for(Order).get(str(event.order_id))
        result = get_refunds().request_refund(
            order_id=str(event.order_id),
            item_id=str(event.item_id),
            amount=event.resolution_amount,
            currency=order.currency,
            reason=f"{event.exception_type}: {event.resolution_method}",
        )
        if result.accepted:
            logger.info(
                "Refund requested",
                exception_id=str(event.exception_id),
                item_id=str(event.item_id),
                amount=event.resolution_amount,
                request_id=result.request_id,
            )
        else:
            logger.warning(
                "Refund request rejected",
                exception_id=str(event.exception_id),
                item_id=str(event.item_id),
                amount=event.resolution_amount,
                reason=result.failure_reason,
            )
