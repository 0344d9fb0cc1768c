"""Consolidation sweep — turns planner output into shipments.

Runs periodically; the wait deadline is only honoured at the next sweep after
it elapses.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, InvalidStateError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from forwarding.consolidation.planner import is_ready, plan
from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.order.order import Order
from forwarding.shipment.shipment import Shipment

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Shipment")
class PlanConsolidation:
    """Plan shipments for every order holding unbundled quality-passed items."""

    as_of = DateTime()  # Optional: defaults to now
    order_id = Identifier()  # Optional: restrict the sweep to one order


@forwarding.command(part_of="Shipment")
class ConsolidateOrder:
    order_id = Identifier(required=True)
    as_of = DateTime()


@forwarding.command_handler(part_of=Shipment)
class ConsolidationHandler:
    @handle(PlanConsolidation)
    def plan_consolidation(self, command):
        as_of = command.as_of or datetime.now(UTC)
        if command.order_id:
            order_ids = [str(command.order_id)]
        else:
            ready = current_domain.repository_for(OrderItem).with_status(ItemStatus.QUALITY_CHECK_PASSED)
            order_ids = sorted({str(item.order_id) for item in ready if is_ready(item)})

        if not order_ids:
            logger.info("No items awaiting consolidation", as_of=as_of.isoformat())
            return 0

        created_count = 0
        for order_id in order_ids:
            try:
                shipment_ids = current_domain.process(
                    ConsolidateOrder(order_id=order_id, as_of=as_of),
                    asynchronous=False,
                )
                created_count += len(shipment_ids)
            except (ValidationError, InvalidOperationError, InvalidStateError) as exc:
                logger.warning("Failed to consolidate order", order_id=order_id, error=str(exc))

        logger.info("Consolidation sweep complete", orders=len(order_ids), shipments_created=created_count)
        return created_count

    @handle(ConsolidateOrder)
    def consolidate_order(self, command):
        as_of = command.as_of or datetime.now(UTC)
        order = current_domain.repository_for(Order).get(str(command.order_id))
        items = current_domain.repository_for(OrderItem).for_order(str(order.id))

        result = plan(
            order,
            items,
            as_of,
            default_wait_days=current_domain.CONSOLIDATION_DEFAULT_WAIT_DAYS,
            group_size=current_domain.CONSOLIDATION_GROUP_SIZE,
        )
        if result.waiting:
            logger.info(
                "Holding items for consolidation",
                order_id=str(order.id),
                policy=result.policy.value,
                waiting=len(result.waiting),
                deadline=result.deadline.isoformat() if result.deadline else None,
            )

        repo = current_domain.repository_for(Shipment)
        shipment_ids = []
        for planned in result.shipments:
            shipment = Shipment.create(
                order_id=str(order.id),
                customer_id=str(order.customer_id),
                origin_warehouse=planned.warehouse,
                order_items=planned.items,
                shipment_kind=planned.kind,
                destination_country=planned.items[0].destination_country,
            )
            repo.add(shipment)
            shipment_ids.append(str(shipment.id))
            logger.info(
                "Shipment planned",
                shipment_id=str(shipment.id),
                order_id=str(order.id),
                warehouse=planned.warehouse,
                kind=planned.kind.value,
                reason=planned.reason,
                item_count=len(planned.items),
            )
        return shipment_ids
