"""Order reactions to shipment milestones: first shipment and last delivery dates."""

from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.order.order import Order
from forwarding.shipment.events import ShipmentDelivered, ShipmentDispatched


@forwarding.event_handler(part_of=Order, stream_category="forwarding::shipment")
class OrderShipmentEventHandler:
    @handle(ShipmentDispatched)
    def on_shipment_dispatched(self, event: ShipmentDispatched) -> None:
        repo = current_domain.repository_for(Order)
        order = repo.get(str(event.order_id))
        order.record_first_shipment(event.dispatched_at)
        repo.add(order)

    @handle(ShipmentDelivered)
    def on_shipment_delivered(self, event: ShipmentDelivered) -> None:
        repo = current_domain.repository_for(Order)
        order = repo.get(str(event.order_id))
        order.record_delivery(str(event.shipment_id), event.delivered_at)
        repo.add(order)
