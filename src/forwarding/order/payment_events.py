"""Inbound cross-context event handler — orders are created from payments.

The payment collaborator publishes PaymentCompleted carrying the quote
snapshot it charged for. Redelivery of the same event is harmless: order
creation is keyed on the quote id.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.payments import PaymentCompleted

from forwarding.domain import forwarding
from forwarding.order.creation import CreateOrder
from forwarding.order.order import Order

logger = structlog.get_logger(__name__)

# Register external event so Protean can deserialize it
forwarding.register_external_event(PaymentCompleted, "Payments.PaymentCompleted.v1")


@forwarding.event_handler(part_of=Order, stream_category="payments::payment")
class PaymentOrderEventHandler:
    """Creates the order once the quote has been paid."""

    @handle(PaymentCompleted)
    def on_payment_completed(self, event: PaymentCompleted) -> None:
        order_id = current_domain.process(
            CreateOrder(
                customer_id=str(event.customer_id),
                quote_snapshot=event.quote_snapshot,
                payment_id=str(event.payment_id),
                payment_method=event.payment_method,
                amount_paid=event.amount,
                primary_warehouse=event.primary_warehouse,
                consolidation_preference=event.consolidation_preference,
                max_consolidation_wait_days=event.max_consolidation_wait_days,
                payment_completed_at=event.completed_at,
            ),
            asynchronous=False,
        )
        logger.info(
            "Order created from completed payment",
            order_id=order_id,
            quote_id=event.quote_id,
            payment_id=str(event.payment_id),
        )
