"""Repository for the OrderItem aggregate."""

from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem


@forwarding.repository(part_of=OrderItem)
class OrderItemRepository:
    """Adds order-scoped lookups to the standard CRUD operations."""

    def for_order(self, order_id: str) -> list[OrderItem]:
        """All items of an order, oldest first."""
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").limit(None).all().items

    def with_status(self, *statuses: ItemStatus) -> list[OrderItem]:
        return self._dao.query.filter(status__in=[s.value for s in statuses]).limit(None).all().items
