"""OrderItem aggregate (CQRS) — one purchased line and its lifecycle.

Each item is its own consistency boundary so that automation workers,
warehouse staff, carriers and customers can act on sibling items of the same
order concurrently. The Order keeps derived counters over its items; it never
mutates items itself.

State Machine:
    pending_order_placement → seller_order_placed
    seller_order_placed → revision_pending → {revision_approved, revision_rejected}
    {seller_order_placed, revision_approved} → quality_check_pending
    quality_check_pending → {quality_check_passed, quality_check_failed}
    quality_check_passed → shipped → delivered
    Side branches {cancelled, refunded, exchanged} and re-placement
    (→ pending_order_placement) are only reachable through the exception
    workflow; returned is only ever forced by an administrator. Revision
    decisions are only reachable through the revision workflow.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from forwarding.domain import forwarding
from forwarding.item.events import (
    ItemCreated,
    ItemPlacementRequested,
    ItemRevalued,
    ItemStatusChanged,
    ItemStatusForced,
    QualityCheckRecorded,
    SellerOrderRecorded,
)
from forwarding.shared.variance import percentage_change, within_auto_approval


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ItemStatus(Enum):
    PENDING_ORDER_PLACEMENT = "pending_order_placement"
    SELLER_ORDER_PLACED = "seller_order_placed"
    REVISION_PENDING = "revision_pending"
    REVISION_APPROVED = "revision_approved"
    REVISION_REJECTED = "revision_rejected"
    QUALITY_CHECK_PENDING = "quality_check_pending"
    QUALITY_CHECK_PASSED = "quality_check_passed"
    QUALITY_CHECK_FAILED = "quality_check_failed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"
    EXCHANGED = "exchanged"


class SellerPlatform(Enum):
    AMAZON = "amazon"
    FLIPKART = "flipkart"
    EBAY = "ebay"
    BH = "b&h"
    OTHER = "other"


class Warehouse(Enum):
    INDIA = "india_warehouse"
    CHINA = "china_warehouse"
    US = "us_warehouse"
    MYUS_3PL = "myus_3pl"
    OTHER_3PL = "other_3pl"


class QualityCheckStatus(Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class Workflow(Enum):
    """Workflows that own guarded transitions."""

    REVISION = "revision"
    EXCEPTION = "exception"


TERMINAL_STATUSES = {
    ItemStatus.DELIVERED,
    ItemStatus.CANCELLED,
    ItemStatus.REFUNDED,
    ItemStatus.RETURNED,
    ItemStatus.EXCHANGED,
}

# Item is still on its way to the warehouse or being inspected there
PRE_SHIPMENT_STATUSES = {
    ItemStatus.PENDING_ORDER_PLACEMENT,
    ItemStatus.SELLER_ORDER_PLACED,
    ItemStatus.REVISION_PENDING,
    ItemStatus.REVISION_APPROVED,
    ItemStatus.REVISION_REJECTED,
    ItemStatus.QUALITY_CHECK_PENDING,
    ItemStatus.QUALITY_CHECK_PASSED,
    ItemStatus.QUALITY_CHECK_FAILED,
}

_EXIT = {ItemStatus.CANCELLED, ItemStatus.REFUNDED}

_VALID_TRANSITIONS = {
    ItemStatus.PENDING_ORDER_PLACEMENT: {ItemStatus.SELLER_ORDER_PLACED} | _EXIT,
    ItemStatus.SELLER_ORDER_PLACED: {
        ItemStatus.REVISION_PENDING,
        ItemStatus.QUALITY_CHECK_PENDING,
        ItemStatus.PENDING_ORDER_PLACEMENT,
    }
    | _EXIT,
    ItemStatus.REVISION_PENDING: {
        ItemStatus.REVISION_APPROVED,
        ItemStatus.REVISION_REJECTED,
        ItemStatus.PENDING_ORDER_PLACEMENT,
    }
    | _EXIT,
    ItemStatus.REVISION_APPROVED: {
        ItemStatus.REVISION_PENDING,
        ItemStatus.QUALITY_CHECK_PENDING,
        ItemStatus.PENDING_ORDER_PLACEMENT,
    }
    | _EXIT,
    ItemStatus.REVISION_REJECTED: {ItemStatus.PENDING_ORDER_PLACEMENT} | _EXIT,
    ItemStatus.QUALITY_CHECK_PENDING: {ItemStatus.QUALITY_CHECK_PASSED, ItemStatus.QUALITY_CHECK_FAILED} | _EXIT,
    ItemStatus.QUALITY_CHECK_PASSED: {ItemStatus.SHIPPED} | _EXIT,
    ItemStatus.QUALITY_CHECK_FAILED: {
        ItemStatus.QUALITY_CHECK_PASSED,
        ItemStatus.PENDING_ORDER_PLACEMENT,
        ItemStatus.RETURNED,
        ItemStatus.EXCHANGED,
    }
    | _EXIT,
    ItemStatus.SHIPPED: {
        ItemStatus.DELIVERED,
        ItemStatus.PENDING_ORDER_PLACEMENT,
        ItemStatus.RETURNED,
        ItemStatus.EXCHANGED,
    }
    | _EXIT,
    ItemStatus.DELIVERED: set(),  # terminal
    ItemStatus.CANCELLED: set(),  # terminal
    ItemStatus.REFUNDED: set(),  # terminal
    ItemStatus.RETURNED: set(),  # terminal
    ItemStatus.EXCHANGED: set(),  # terminal
}

_EXCEPTION_TARGETS = {
    ItemStatus.CANCELLED,
    ItemStatus.REFUNDED,
    ItemStatus.RETURNED,
    ItemStatus.EXCHANGED,
    ItemStatus.PENDING_ORDER_PLACEMENT,
}

_GUARDED_TRANSITIONS = {
    (ItemStatus.SELLER_ORDER_PLACED, ItemStatus.REVISION_PENDING): Workflow.REVISION,
    (ItemStatus.REVISION_APPROVED, ItemStatus.REVISION_PENDING): Workflow.REVISION,
    (ItemStatus.REVISION_PENDING, ItemStatus.REVISION_APPROVED): Workflow.REVISION,
    (ItemStatus.REVISION_PENDING, ItemStatus.REVISION_REJECTED): Workflow.REVISION,
    (ItemStatus.QUALITY_CHECK_FAILED, ItemStatus.QUALITY_CHECK_PASSED): Workflow.EXCEPTION,
}

REVISABLE_STATUSES = {ItemStatus.SELLER_ORDER_PLACED, ItemStatus.REVISION_APPROVED}


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@forwarding.aggregate
class OrderItem:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    quote_line_ref = String(max_length=100)
    product_name = String(required=True, max_length=500)
    product_url = String(max_length=1000)
    seller_platform = String(max_length=20, choices=SellerPlatform, default=SellerPlatform.OTHER.value)
    quantity = Integer(default=1, min_value=1)
    origin_country = String(max_length=2)
    destination_country = String(max_length=2)

    # Quote-time baseline vs current values
    original_price = Float(required=True, min_value=0.0)
    current_price = Float(required=True, min_value=0.0)
    original_weight = Float(required=True, min_value=0.0)
    current_weight = Float(required=True, min_value=0.0)
    actual_weight = Float(min_value=0.0)
    auto_approval_threshold_amount = Float(default=25.0)
    auto_approval_threshold_percentage = Float(default=5.0)
    requires_customer_approval = Boolean(default=False)

    # Seller order
    seller_order_id = String(max_length=100)
    seller_order_date = DateTime()
    seller_tracking_id = String(max_length=100)

    # Warehouse & quality
    assigned_warehouse = String(max_length=30, choices=Warehouse)
    warehouse_arrival_date = DateTime()
    consolidation_group_id = Identifier()
    quality_check_status = String(max_length=20, choices=QualityCheckStatus)
    quality_notes = Text()
    quality_photos = Text()  # JSON list of photo URLs
    inspector = String(max_length=100)

    is_replacement = Boolean(default=False)
    refund_amount = Float(default=0.0)
    cancellation_reason = String(max_length=500)
    status = String(
        max_length=30,
        choices=ItemStatus,
        default=ItemStatus.PENDING_ORDER_PLACEMENT.value,
    )
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id: str,
        customer_id: str,
        line: dict,
        assigned_warehouse: str | None = None,
        is_replacement: bool = False,
    ):
        """Register a quoted line as a purchasable item awaiting placement."""
        now = datetime.now(UTC)
        item = cls(
            order_id=order_id,
            customer_id=customer_id,
            quote_line_ref=line.get("quote_line_id"),
            product_name=line["product_name"],
            product_url=line.get("product_url"),
            seller_platform=line.get("seller_platform", SellerPlatform.OTHER.value),
            quantity=line.get("quantity", 1),
            origin_country=line.get("origin_country"),
            destination_country=line.get("destination_country"),
            original_price=line["price"],
            current_price=line["price"],
            original_weight=line["weight"],
            current_weight=line["weight"],
            assigned_warehouse=line.get("warehouse") or assigned_warehouse,
            is_replacement=is_replacement,
            status=ItemStatus.PENDING_ORDER_PLACEMENT.value,
            created_at=now,
            updated_at=now,
        )
        if "auto_approval_threshold_amount" in line:
            item.auto_approval_threshold_amount = line["auto_approval_threshold_amount"]
        if "auto_approval_threshold_percentage" in line:
            item.auto_approval_threshold_percentage = line["auto_approval_threshold_percentage"]

        item.raise_(
            ItemCreated(
                item_id=str(item.id),
                order_id=order_id,
                customer_id=customer_id,
                product_name=item.product_name,
                seller_platform=item.seller_platform,
                original_price=item.original_price,
                original_weight=item.original_weight,
                quantity=item.quantity,
                created_at=now,
            )
        )
        item._request_placement(now)
        return item

    @classmethod
    def replacement_for(cls, original: "OrderItem"):
        """A fresh item that re-buys a unit which can no longer be recovered."""
        line = {
            "quote_line_id": original.quote_line_ref,
            "product_name": original.product_name,
            "product_url": original.product_url,
            "seller_platform": original.seller_platform,
            "quantity": original.quantity,
            "origin_country": original.origin_country,
            "destination_country": original.destination_country,
            "price": original.current_price,
            "weight": original.current_weight,
            "auto_approval_threshold_amount": original.auto_approval_threshold_amount,
            "auto_approval_threshold_percentage": original.auto_approval_threshold_percentage,
        }
        return cls.create(
            str(original.order_id),
            str(original.customer_id),
            line,
            assigned_warehouse=original.assigned_warehouse,
            is_replacement=True,
        )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def price_variance(self) -> float:
        return round((self.current_price or 0.0) - (self.original_price or 0.0), 2)

    @property
    def weight_variance(self) -> float:
        return round((self.current_weight or 0.0) - (self.original_weight or 0.0), 3)

    @property
    def is_terminal(self) -> bool:
        return ItemStatus(self.status) in TERMINAL_STATUSES

    @property
    def photos(self) -> list[str]:
        return json.loads(self.quality_photos) if self.quality_photos else []

    def _refresh_approval_flag(self) -> None:
        self.requires_customer_approval = not within_auto_approval(
            self.price_variance,
            percentage_change(self.original_price, self.current_price),
            self.auto_approval_threshold_amount,
            self.auto_approval_threshold_percentage,
        )

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: ItemStatus, via: Workflow | None = None) -> None:
        current = ItemStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        required = _GUARDED_TRANSITIONS.get((current, target))
        if required is None and target in _EXCEPTION_TARGETS:
            required = Workflow.EXCEPTION
        if required is not None and via != required:
            raise ValidationError(
                {"status": [f"Transition from {current.value} to {target.value} requires the {required.value} workflow"]}
            )

    def _transition(self, target: ItemStatus, via: Workflow | None = None, reason: str | None = None) -> datetime:
        self._assert_can_transition(target, via)
        now = datetime.now(UTC)
        previous = self.status
        self.status = target.value
        self.updated_at = now
        self.raise_(
            ItemStatusChanged(
                item_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                from_status=previous,
                to_status=target.value,
                reason=reason,
                changed_at=now,
            )
        )
        return now

    def _request_placement(self, now: datetime) -> None:
        self.raise_(
            ItemPlacementRequested(
                item_id=str(self.id),
                order_id=str(self.order_id),
                product_url=self.product_url,
                seller_platform=self.seller_platform,
                quantity=self.quantity,
                is_replacement=self.is_replacement,
                requested_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Seller placement
    # -------------------------------------------------------------------
    def record_seller_order(
        self,
        seller_order_id: str,
        seller_order_date: datetime | None = None,
        seller_tracking_id: str | None = None,
    ) -> None:
        """Record that the seller accepted the order."""
        placed_at = self._transition(ItemStatus.SELLER_ORDER_PLACED)
        self.seller_order_id = seller_order_id
        self.seller_order_date = seller_order_date or placed_at
        if seller_tracking_id:
            self.seller_tracking_id = seller_tracking_id
        self.raise_(
            SellerOrderRecorded(
                item_id=str(self.id),
                order_id=str(self.order_id),
                seller_order_id=seller_order_id,
                seller_order_date=self.seller_order_date,
                seller_tracking_id=self.seller_tracking_id,
            )
        )

    def record_seller_tracking(self, seller_tracking_id: str) -> None:
        if self.is_terminal:
            raise ValidationError({"status": [f"Item is already {self.status}"]})
        self.seller_tracking_id = seller_tracking_id
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Revision workflow
    # -------------------------------------------------------------------
    def begin_revision(self) -> None:
        self._transition(ItemStatus.REVISION_PENDING, via=Workflow.REVISION)

    def approve_revision(self, new_price: float, new_weight: float) -> None:
        """Adopt the revised price/weight as the item's current values."""
        now = self._transition(ItemStatus.REVISION_APPROVED, via=Workflow.REVISION)
        previous_price, previous_weight = self.current_price, self.current_weight
        self.current_price = new_price
        self.current_weight = new_weight
        self._refresh_approval_flag()
        self.raise_(
            ItemRevalued(
                item_id=str(self.id),
                order_id=str(self.order_id),
                previous_price=previous_price,
                current_price=new_price,
                previous_weight=previous_weight,
                current_weight=new_weight,
                quantity=self.quantity,
                revalued_at=now,
            )
        )

    def reject_revision(self) -> None:
        self._transition(ItemStatus.REVISION_REJECTED, via=Workflow.REVISION, reason="Customer rejected revision")

    # -------------------------------------------------------------------
    # Warehouse
    # -------------------------------------------------------------------
    def record_warehouse_arrival(self, warehouse: str, arrived_at: datetime | None = None) -> None:
        """Goods reached the warehouse and await inspection."""
        now = self._transition(ItemStatus.QUALITY_CHECK_PENDING)
        self.assigned_warehouse = warehouse
        self.warehouse_arrival_date = arrived_at or now
        self.quality_check_status = QualityCheckStatus.PENDING.value

    def record_quality_check(
        self,
        passed: bool,
        inspector: str,
        notes: str | None = None,
        photos: list[str] | None = None,
        actual_weight: float | None = None,
    ) -> None:
        """Record the inspection result; a failure hands the item to the exception workflow."""
        target = ItemStatus.QUALITY_CHECK_PASSED if passed else ItemStatus.QUALITY_CHECK_FAILED
        now = self._transition(target)
        self.quality_check_status = (QualityCheckStatus.PASSED if passed else QualityCheckStatus.FAILED).value
        self.inspector = inspector
        self.quality_notes = notes
        self.quality_photos = json.dumps(photos or [])
        if actual_weight is not None:
            self.actual_weight = actual_weight
        self.raise_(
            QualityCheckRecorded(
                item_id=str(self.id),
                order_id=str(self.order_id),
                passed=passed,
                inspector=inspector,
                notes=notes,
                actual_weight=actual_weight,
                item_value=self.current_price,
                checked_at=now,
            )
        )

    def assign_consolidation_group(self, group_id: str | None) -> None:
        self.consolidation_group_id = group_id
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def mark_shipped(self, shipment_id: str) -> None:
        self._transition(ItemStatus.SHIPPED, reason=f"Dispatched in shipment {shipment_id}")
        self.consolidation_group_id = shipment_id

    def mark_delivered(self) -> None:
        self._transition(ItemStatus.DELIVERED)

    # -------------------------------------------------------------------
    # Exception workflow outcomes
    # -------------------------------------------------------------------
    def cancel(self, reason: str) -> None:
        self._transition(ItemStatus.CANCELLED, via=Workflow.EXCEPTION, reason=reason)
        self.cancellation_reason = reason

    def refund(self, amount: float, reason: str) -> None:
        self._transition(ItemStatus.REFUNDED, via=Workflow.EXCEPTION, reason=reason)
        self.refund_amount = (self.refund_amount or 0.0) + amount

    def record_partial_refund(self, amount: float) -> None:
        """Customer keeps the item against a partial refund; the lifecycle continues."""
        if self.is_terminal:
            raise ValidationError({"status": [f"Item is already {self.status}"]})
        self.refund_amount = (self.refund_amount or 0.0) + amount
        self.updated_at = datetime.now(UTC)
        if ItemStatus(self.status) == ItemStatus.QUALITY_CHECK_FAILED:
            self._transition(ItemStatus.QUALITY_CHECK_PASSED, via=Workflow.EXCEPTION, reason="Accepted as-is")
            self.quality_check_status = QualityCheckStatus.PASSED.value

    def mark_exchanged(self, reason: str) -> None:
        self._transition(ItemStatus.EXCHANGED, via=Workflow.EXCEPTION, reason=reason)

    def restart_placement(self, reason: str) -> None:
        """Re-enter the placement pipeline for a replacement or alternative source.

        An item whose placement never succeeded stays where it is and only
        gets a fresh placement request.
        """
        if ItemStatus(self.status) == ItemStatus.PENDING_ORDER_PLACEMENT:
            now = datetime.now(UTC)
            self.updated_at = now
        else:
            now = self._transition(ItemStatus.PENDING_ORDER_PLACEMENT, via=Workflow.EXCEPTION, reason=reason)
        self.is_replacement = True
        self.seller_order_id = None
        self.seller_order_date = None
        self.seller_tracking_id = None
        self.warehouse_arrival_date = None
        self.consolidation_group_id = None
        self.quality_check_status = None
        self._request_placement(now)

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def force_status(self, target: ItemStatus, actor_id: str, reason: str) -> None:
        """Set the status without consulting the transition table.

        Capability checks happen in the command handler.
        """
        if not reason:
            raise ValidationError({"reason": ["A reason is required to force a status"]})
        now = datetime.now(UTC)
        previous = self.status
        self.status = target.value
        self.updated_at = now
        self.raise_(
            ItemStatusForced(
                item_id=str(self.id),
                order_id=str(self.order_id),
                from_status=previous,
                to_status=target.value,
                actor_id=actor_id,
                reason=reason,
                forced_at=now,
            )
        )
        self.raise_(
            ItemStatusChanged(
                item_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                from_status=previous,
                to_status=target.value,
                reason=reason,
                changed_at=now,
            )
        )
