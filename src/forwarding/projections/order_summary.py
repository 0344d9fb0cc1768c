"""Order summary — customer-facing progress view of an order."""

import json

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.order.events import (
    OrderCountersRecomputed,
    OrderCreated,
    OrderDeliveryRecorded,
    OrderPreferencesChanged,
    OrderRefundRecorded,
    OrderShipmentStarted,
    OrderTotalsAdjusted,
)
from forwarding.order.order import Order


@forwarding.projection
class OrderSummary:
    order_id = Identifier(identifier=True, required=True)
    quote_id = String(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    consolidation_preference = String()
    total_items = Integer(default=0)
    active_items = Integer(default=0)
    cancelled_items = Integer(default=0)
    refunded_items = Integer(default=0)
    revision_pending_items = Integer(default=0)
    shipped_items = Integer(default=0)
    delivered_items = Integer(default=0)
    original_quote_total = Float()
    current_order_total = Float()
    variance_amount = Float(default=0.0)
    total_refunded = Float(default=0.0)
    currency = String(default="USD")
    first_shipment_date = DateTime()
    last_delivery_date = DateTime()
    created_at = DateTime()
    updated_at = DateTime()


@forwarding.projector(projector_for=OrderSummary, aggregates=[Order])
class OrderSummaryProjector:
    @on(OrderCreated)
    def on_order_created(self, event):
        current_domain.repository_for(OrderSummary).add(
            OrderSummary(
                order_id=event.order_id,
                quote_id=event.quote_id,
                customer_id=event.customer_id,
                status="processing",
                consolidation_preference=event.consolidation_preference,
                total_items=len(json.loads(event.item_ids)),
                original_quote_total=event.original_quote_total,
                current_order_total=event.original_quote_total,
                currency=event.currency,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(OrderCountersRecomputed)
    def on_counters_recomputed(self, event):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(event.order_id)
        summary.status = event.status
        summary.total_items = event.total_items
        summary.active_items = event.active_items
        summary.cancelled_items = event.cancelled_items
        summary.refunded_items = event.refunded_items
        summary.revision_pending_items = event.revision_pending_items
        summary.shipped_items = event.shipped_items
        summary.delivered_items = event.delivered_items
        summary.updated_at = event.recomputed_at
        repo.add(summary)

    @on(OrderPreferencesChanged)
    def on_preferences_changed(self, event):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(event.order_id)
        summary.consolidation_preference = event.consolidation_preference
        summary.updated_at = event.changed_at
        repo.add(summary)

    @on(OrderTotalsAdjusted)
    def on_totals_adjusted(self, event):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(event.order_id)
        summary.current_order_total = event.current_order_total
        summary.variance_amount = event.variance_amount
        summary.updated_at = event.adjusted_at
        repo.add(summary)

    @on(OrderRefundRecorded)
    def on_refund_recorded(self, event):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(event.order_id)
        summary.total_refunded = event.total_refunded
        summary.updated_at = event.recorded_at
        repo.add(summary)

    @on(OrderShipmentStarted)
    def on_shipment_started(self, event):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(event.order_id)
        summary.first_shipment_date = event.first_shipment_date
        repo.add(summary)

    @on(OrderDeliveryRecorded)
    def on_delivery_recorded(self, event):
        repo = current_domain.repository_for(OrderSummary)
        summary = repo.get(event.order_id)
        summary.last_delivery_date = event.last_delivery_date
        repo.add(summary)
