"""Consolidation Planner: which quality-passed items leave the warehouse now.

The planner is pure. It looks at one order and all of its items and returns
the bundles that should become shipments at ``as_of``; persisting them is the
caller's job.

Policies:
    ship_as_ready   one bundle per ready item
    wait_for_all    one bundle per warehouse once nothing is pending,
                    or whatever is ready once the wait deadline has passed
    partial_groups  a warehouse's ready items once there are at least
                    ``group_size`` of them, or on the wait_for_all triggers

After the deadline every newly ready item ships on the next sweep, so a late
sibling travels alone instead of restarting the wait.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from forwarding.item.item import PRE_SHIPMENT_STATUSES, ItemStatus, OrderItem, Warehouse
from forwarding.order.order import ConsolidationPreference, Order
from forwarding.shared.clock import as_utc
from forwarding.shipment.shipment import ShipmentKind


@dataclass
class PlannedShipment:
    warehouse: str
    items: list[OrderItem]
    kind: ShipmentKind
    reason: str

    @property
    def item_ids(self) -> list[str]:
        return [str(item.id) for item in self.items]


@dataclass
class ConsolidationPlan:
    order_id: str
    policy: ConsolidationPreference
    deadline: datetime | None
    deadline_passed: bool
    shipments: list[PlannedShipment] = field(default_factory=list)
    waiting: list[str] = field(default_factory=list)  # ready item ids held back


def wait_deadline(order: Order, default_wait_days: int) -> datetime | None:
    """Moment the order stops waiting for its stragglers."""
    if order.payment_completed_at is None:
        return None
    days = order.max_consolidation_wait_days or default_wait_days
    return as_utc(order.payment_completed_at) + timedelta(days=days)


def is_ready(item: OrderItem) -> bool:
    """Quality-passed and not yet bundled into a shipment."""
    return ItemStatus(item.status) == ItemStatus.QUALITY_CHECK_PASSED and not item.consolidation_group_id


def is_pending(item: OrderItem) -> bool:
    """Still on its way to being shippable."""
    status = ItemStatus(item.status)
    return status in PRE_SHIPMENT_STATUSES and status != ItemStatus.QUALITY_CHECK_PASSED


def warehouse_of(item: OrderItem, order: Order) -> str:
    return item.assigned_warehouse or order.primary_warehouse or Warehouse.OTHER_3PL.value


def shipment_kind(items: list[OrderItem], siblings_pending: bool) -> ShipmentKind:
    if any(item.is_replacement for item in items):
        return ShipmentKind.REPLACEMENT
    if siblings_pending:
        return ShipmentKind.PARTIAL
    if len(items) > 1:
        return ShipmentKind.CONSOLIDATED
    return ShipmentKind.DIRECT


def plan(
    order: Order,
    items: list[OrderItem],
    as_of: datetime,
    default_wait_days: int = 14,
    group_size: int = 2,
) -> ConsolidationPlan:
    policy = ConsolidationPreference(order.consolidation_preference)
    deadline = wait_deadline(order, default_wait_days)
    deadline_passed = deadline is not None and as_utc(as_of) >= deadline

    ready_by_warehouse: dict[str, list[OrderItem]] = {}
    for item in items:
        if is_ready(item):
            ready_by_warehouse.setdefault(warehouse_of(item, order), []).append(item)
    pending = [item for item in items if is_pending(item)]

    result = ConsolidationPlan(
        order_id=str(order.id),
        policy=policy,
        deadline=deadline,
        deadline_passed=deadline_passed,
    )

    for warehouse, ready in sorted(ready_by_warehouse.items()):
        if policy == ConsolidationPreference.SHIP_AS_READY:
            for item in ready:
                result.shipments.append(
                    PlannedShipment(warehouse, [item], shipment_kind([item], bool(pending)), "ship_as_ready")
                )
            continue

        if not pending:
            reason = "all_items_ready"
        elif deadline_passed:
            reason = "wait_deadline_elapsed"
        elif policy == ConsolidationPreference.PARTIAL_GROUPS and len(ready) >= group_size:
            reason = "group_size_reached"
        else:
            result.waiting.extend(str(item.id) for item in ready)
            continue

        result.shipments.append(PlannedShipment(warehouse, ready, shipment_kind(ready, bool(pending)), reason))

    return result
