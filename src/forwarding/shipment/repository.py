"""Repository for the Shipment aggregate."""

from forwarding.domain import forwarding
from forwarding.shipment.shipment import Shipment


@forwarding.repository(part_of=Shipment)
class ShipmentRepository:
    def for_order(self, order_id: str) -> list[Shipment]:
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").limit(None).all().items

    def by_tracking_number(self, tracking_number: str) -> Shipment | None:
        """Find the shipment that carries ``tracking_number`` on any tier."""
        for field in ("international_tracking_number", "local_tracking_number", "seller_tracking_number"):
            shipment = self._dao.query.filter(**{field: tracking_number}).all().first
            if shipment is not None:
                return shipment
        return None
