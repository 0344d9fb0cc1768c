"""Order aggregate (CQRS) — the customer-facing roll-up of a paid quote.

The Order owns no item state. Its counters and status are a pure function of
the current statuses of its OrderItems and are rewritten wholesale by
``apply_item_statuses`` whenever an item changes; there is no incremental
counter path that could drift.

Status (derived):
    processing → partially_shipped → shipped → delivered
    closed when every item ended without a delivery
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text, ValueObject

from forwarding.domain import forwarding
from forwarding.item.item import TERMINAL_STATUSES, ItemStatus, Warehouse
from forwarding.order.events import (
    OrderCountersRecomputed,
    OrderCreated,
    OrderDeliveryRecorded,
    OrderPreferencesChanged,
    OrderRefundRecorded,
    OrderShipmentStarted,
    OrderTotalsAdjusted,
)
from forwarding.shared.clock import as_utc


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PROCESSING = "processing"
    PARTIALLY_SHIPPED = "partially_shipped"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CLOSED = "closed"


class ConsolidationPreference(Enum):
    SHIP_AS_READY = "ship_as_ready"
    WAIT_FOR_ALL = "wait_for_all"
    PARTIAL_GROUPS = "partial_groups"


class PaymentMethod(Enum):
    COD = "cod"
    BANK_TRANSFER = "bank_transfer"
    STRIPE = "stripe"
    PAYPAL = "paypal"
    PAYU = "payu"
    ESEWA = "esewa"
    KHALTI = "khalti"
    FONEPAY = "fonepay"


class PaymentStatus(Enum):
    COMPLETED = "completed"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


_FINISHED_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CLOSED}

# Buckets other than "active"; every other status counts as active
_COUNTED_BUCKETS = {
    ItemStatus.CANCELLED: "cancelled_items",
    ItemStatus.REFUNDED: "refunded_items",
    ItemStatus.REVISION_PENDING: "revision_pending_items",
    ItemStatus.SHIPPED: "shipped_items",
    ItemStatus.DELIVERED: "delivered_items",
}


def derive_status(statuses: list[ItemStatus]) -> OrderStatus:
    """Order status implied by the statuses of its items.

    Delivered items count as moved, so an order whose remaining open items
    are all shipped reads ``shipped`` even after a first delivery.
    """
    open_statuses = [s for s in statuses if s not in TERMINAL_STATUSES]
    if statuses and not open_statuses:
        return OrderStatus.DELIVERED if ItemStatus.DELIVERED in statuses else OrderStatus.CLOSED

    moved = [s for s in statuses if s in (ItemStatus.SHIPPED, ItemStatus.DELIVERED)]
    if not moved:
        return OrderStatus.PROCESSING
    if all(s == ItemStatus.SHIPPED for s in open_statuses):
        return OrderStatus.SHIPPED
    return OrderStatus.PARTIALLY_SHIPPED


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@forwarding.value_object(part_of="Order")
class QuoteSnapshot:
    """Immutable quote-time baseline the revision workflow compares against."""

    quote_id = String(required=True, max_length=100)
    lines = Text(required=True)  # JSON list of quoted line dicts
    total = Float(required=True, min_value=0.0)
    total_weight = Float(min_value=0.0)
    currency = String(max_length=3, default="USD")
    captured_at = DateTime()

    @property
    def line_items(self) -> list[dict]:
        return json.loads(self.lines) if self.lines else []


@forwarding.value_object(part_of="Order")
class ItemCounters:
    """Per-bucket item counts.

    ``total_items`` always equals the sum of the other six counters.
    """

    total_items = Integer(default=0)
    active_items = Integer(default=0)
    cancelled_items = Integer(default=0)
    refunded_items = Integer(default=0)
    revision_pending_items = Integer(default=0)
    shipped_items = Integer(default=0)
    delivered_items = Integer(default=0)

    @classmethod
    def from_statuses(cls, statuses: list[ItemStatus]) -> "ItemCounters":
        counts = dict.fromkeys(_COUNTED_BUCKETS.values(), 0)
        for status in statuses:
            bucket = _COUNTED_BUCKETS.get(status)
            if bucket:
                counts[bucket] += 1
        return cls(
            total_items=len(statuses),
            active_items=len(statuses) - sum(counts.values()),
            **counts,
        )


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@forwarding.aggregate
class Order:
    quote_id = String(required=True, max_length=100)
    customer_id = Identifier(required=True)
    payment_id = String(max_length=100)
    payment_method = String(max_length=20, choices=PaymentMethod)
    payment_status = String(max_length=30, choices=PaymentStatus, default=PaymentStatus.COMPLETED.value)
    primary_warehouse = String(max_length=30, choices=Warehouse)
    consolidation_preference = String(
        max_length=20,
        choices=ConsolidationPreference,
        default=ConsolidationPreference.WAIT_FOR_ALL.value,
    )
    max_consolidation_wait_days = Integer(default=14, min_value=1, max_value=30)

    quote_snapshot = ValueObject(QuoteSnapshot)
    currency = String(max_length=3, default="USD")
    original_quote_total = Float(default=0.0)
    current_order_total = Float(default=0.0)
    variance_amount = Float(default=0.0)
    total_paid = Float(default=0.0)
    total_refunded = Float(default=0.0)

    counters = ValueObject(ItemCounters)
    status = String(
        max_length=30,
        choices=OrderStatus,
        default=OrderStatus.PROCESSING.value,
    )
    payment_completed_at = DateTime()
    first_shipment_date = DateTime()
    last_delivery_date = DateTime()
    counters_recomputed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        quote_snapshot: QuoteSnapshot,
        customer_id: str,
        total_paid: float,
        payment_id: str | None = None,
        payment_method: str | None = None,
        primary_warehouse: str | None = None,
        consolidation_preference: str | None = None,
        max_consolidation_wait_days: int | None = None,
        payment_completed_at: datetime | None = None,
    ):
        """Create the order for a quote whose payment has completed."""
        now = datetime.now(UTC)
        order = cls(
            quote_id=quote_snapshot.quote_id,
            customer_id=customer_id,
            payment_id=payment_id,
            payment_method=payment_method,
            primary_warehouse=primary_warehouse,
            consolidation_preference=consolidation_preference or ConsolidationPreference.WAIT_FOR_ALL.value,
            max_consolidation_wait_days=max_consolidation_wait_days or 14,
            quote_snapshot=quote_snapshot,
            currency=quote_snapshot.currency,
            original_quote_total=quote_snapshot.total,
            current_order_total=quote_snapshot.total,
            variance_amount=0.0,
            total_paid=total_paid,
            counters=ItemCounters(),
            status=OrderStatus.PROCESSING.value,
            payment_completed_at=payment_completed_at or now,
            created_at=now,
            updated_at=now,
        )
        return order

    def announce_creation(self, item_ids: list[str]) -> None:
        """Raise the creation event once the order's items exist."""
        self.raise_(
            OrderCreated(
                order_id=str(self.id),
                quote_id=self.quote_id,
                customer_id=str(self.customer_id),
                item_ids=json.dumps(item_ids),
                original_quote_total=self.original_quote_total,
                currency=self.currency,
                consolidation_preference=self.consolidation_preference,
                created_at=self.created_at,
            )
        )

    # -------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------
    def apply_item_statuses(self, statuses: list[ItemStatus]) -> bool:
        """Rewrite counters and status from the given item statuses.

        Returns True when anything changed. Calling it again with the same
        statuses is a no-op.
        """
        counters = ItemCounters.from_statuses(statuses)
        status = derive_status(statuses)
        now = datetime.now(UTC)
        self.counters_recomputed_at = now
        if counters == self.counters and status.value == self.status:
            return False

        self.counters = counters
        self.status = status.value
        self.updated_at = now
        self.raise_(
            OrderCountersRecomputed(
                order_id=str(self.id),
                status=status.value,
                recomputed_at=now,
                **counters.to_dict(),
            )
        )
        return True

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def change_preferences(
        self,
        changed_by: str,
        consolidation_preference: str | None = None,
        max_consolidation_wait_days: int | None = None,
        primary_warehouse: str | None = None,
    ) -> None:
        if OrderStatus(self.status) in _FINISHED_STATUSES:
            raise ValidationError({"status": [f"Cannot change preferences of a {self.status} order"]})

        now = datetime.now(UTC)
        if consolidation_preference:
            self.consolidation_preference = ConsolidationPreference(consolidation_preference).value
        if max_consolidation_wait_days is not None:
            self.max_consolidation_wait_days = max_consolidation_wait_days
        if primary_warehouse:
            self.primary_warehouse = Warehouse(primary_warehouse).value
        self.updated_at = now
        self.raise_(
            OrderPreferencesChanged(
                order_id=str(self.id),
                primary_warehouse=self.primary_warehouse,
                consolidation_preference=self.consolidation_preference,
                max_consolidation_wait_days=self.max_consolidation_wait_days,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Financials
    # -------------------------------------------------------------------
    def adjust_total(self, item_id: str, delta: float) -> None:
        """Move the current total by an approved revision's cost impact."""
        now = datetime.now(UTC)
        self.current_order_total = round((self.current_order_total or 0.0) + delta, 2)
        self.variance_amount = round(self.current_order_total - (self.original_quote_total or 0.0), 2)
        self.updated_at = now
        self.raise_(
            OrderTotalsAdjusted(
                order_id=str(self.id),
                item_id=item_id,
                delta=delta,
                current_order_total=self.current_order_total,
                variance_amount=self.variance_amount,
                adjusted_at=now,
            )
        )

    def record_refund(self, item_id: str, amount: float) -> None:
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        now = datetime.now(UTC)
        self.total_refunded = round((self.total_refunded or 0.0) + amount, 2)
        if self.total_refunded >= (self.total_paid or 0.0):
            self.payment_status = PaymentStatus.REFUNDED.value
        else:
            self.payment_status = PaymentStatus.PARTIALLY_REFUNDED.value
        self.updated_at = now
        self.raise_(
            OrderRefundRecorded(
                order_id=str(self.id),
                item_id=item_id,
                amount=amount,
                total_refunded=self.total_refunded,
                recorded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Shipping milestones
    # -------------------------------------------------------------------
    def record_first_shipment(self, shipped_at: datetime) -> None:
        if self.first_shipment_date is not None:
            return
        self.first_shipment_date = shipped_at
        self.updated_at = datetime.now(UTC)
        self.raise_(OrderShipmentStarted(order_id=str(self.id), first_shipment_date=shipped_at))

    def record_delivery(self, shipment_id: str, delivered_at: datetime) -> None:
        if self.last_delivery_date is not None and as_utc(self.last_delivery_date) >= as_utc(delivered_at):
            return
        self.last_delivery_date = delivered_at
        self.updated_at = datetime.now(UTC)
        self.raise_(
            OrderDeliveryRecorded(
                order_id=str(self.id),
                shipment_id=shipment_id,
                last_delivery_date=delivered_at,
            )
        )
