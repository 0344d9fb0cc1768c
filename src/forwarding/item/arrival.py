"""Warehouse arrival — command and handler.

Warehouse staff scan inbound parcels; a placed item that reaches the
warehouse waits there for inspection.
"""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item.item import OrderItem, Warehouse
from forwarding.shared.errors import assert_expected_version


@forwarding.command(part_of="OrderItem")
class RecordWarehouseArrival:
    """Record that an item arrived at a warehouse."""

    item_id = Identifier(required=True)
    warehouse = String(required=True, max_length=30, choices=Warehouse)
    arrived_at = DateTime()
    expected_version = Integer()


@forwarding.command_handler(part_of=OrderItem)
class WarehouseArrivalHandler:
    @handle(RecordWarehouseArrival)
    def record_arrival(self, command):
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(command.item_id)
        assert_expected_version(item, command.expected_version)
        item.record_warehouse_arrival(command.warehouse, arrived_at=command.arrived_at)
        repo.add(item)
