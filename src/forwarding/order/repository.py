"""Repository for the Order aggregate."""

from forwarding.domain import forwarding
from forwarding.order.order import Order, OrderStatus


@forwarding.repository(part_of=Order)
class OrderRepository:
    def find_by_quote(self, quote_id: str) -> Order | None:
        """The order created for a quote, if any."""
        return self._dao.query.filter(quote_id=quote_id).all().first

    def open_orders(self) -> list[Order]:
        """Orders that still have items to consolidate or deliver."""
        open_statuses = [
            OrderStatus.PROCESSING.value,
            OrderStatus.PARTIALLY_SHIPPED.value,
            OrderStatus.SHIPPED.value,
        ]
        return self._dao.query.filter(status__in=open_statuses).limit(None).all().items
