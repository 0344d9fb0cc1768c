"""Domain events raised by the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from forwarding.domain import forwarding


@forwarding.event(part_of="Order")
class OrderCreated:
    """A paid quote became an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    quote_id = String(required=True)
    customer_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list of OrderItem ids
    original_quote_total = Float(required=True)
    currency = String(required=True)
    consolidation_preference = String(required=True)
    created_at = DateTime(required=True)


@forwarding.event(part_of="Order")
class OrderCountersRecomputed:
    """Item counters (and the derived order status) changed after a recompute."""

    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    total_items = Integer(required=True)
    active_items = Integer(required=True)
    cancelled_items = Integer(required=True)
    refunded_items = Integer(required=True)
    revision_pending_items = Integer(required=True)
    shipped_items = Integer(required=True)
    delivered_items = Integer(required=True)
    recomputed_at = DateTime(required=True)


@forwarding.event(part_of="Order")
class OrderPreferencesChanged:
    """An administrator changed the warehouse or consolidation preference."""

    __version__ = 1

    order_id = Identifier(required=True)
    primary_warehouse = String()
    consolidation_preference = String(required=True)
    max_consolidation_wait_days = Integer(required=True)
    changed_by = String(required=True)
    changed_at = DateTime(required=True)


@forwarding.event(part_of="Order")
class OrderTotalsAdjusted:
    """An approved revision moved the current order total."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    delta = Float(required=True)
    current_order_total = Float(required=True)
    variance_amount = Float(required=True)
    adjusted_at = DateTime(required=True)


@forwarding.event(part_of="Order")
class OrderRefundRecorded:
    """Money was returned to the customer for one of the order's items."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    recorded_at = DateTime(required=True)


@forwarding.event(part_of="Order")
class OrderShipmentStarted:
    """The first shipment of the order left the warehouse."""

    __version__ = 1

    order_id = Identifier(required=True)
    first_shipment_date = DateTime(required=True)


@forwarding.event(part_of="Order")
class OrderDeliveryRecorded:
    """A shipment of the order reached the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    last_delivery_date = DateTime(required=True)
