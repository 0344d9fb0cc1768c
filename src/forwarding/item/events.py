"""OrderItem domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from forwarding.domain import forwarding


@forwarding.event(part_of="OrderItem")
class ItemCreated:
    """A purchased line was registered for an order."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    product_name = String(required=True)
    seller_platform = String(required=True)
    original_price = Float(required=True)
    original_weight = Float(required=True)
    quantity = Integer(required=True)
    created_at = DateTime(required=True)


@forwarding.event(part_of="OrderItem")
class ItemStatusChanged:
    """The item moved from one lifecycle state to another."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    reason = String(max_length=500)
    changed_at = DateTime(required=True)


@forwarding.event(part_of="OrderItem")
class ItemPlacementRequested:
    """The item needs an order placed with its seller."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    product_url = String(max_length=1000)
    seller_platform = String(required=True)
    quantity = Integer(required=True)
    is_replacement = Boolean(default=False)
    requested_at = DateTime(required=True)


@forwarding.event(part_of="OrderItem")
class SellerOrderRecorded:
    """The seller accepted the order for this item."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    seller_order_id = String(required=True)
    seller_order_date = DateTime(required=True)
    seller_tracking_id = String()


@forwarding.event(part_of="OrderItem")
class QualityCheckRecorded:
    """Warehouse staff inspected the item."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    passed = Boolean(required=True)
    inspector = String(required=True)
    notes = Text()
    actual_weight = Float()
    item_value = Float(required=True)
    checked_at = DateTime(required=True)


@forwarding.event(part_of="OrderItem")
class ItemRevalued:
    """An approved revision replaced the item's current price/weight."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_price = Float(required=True)
    current_price = Float(required=True)
    previous_weight = Float(required=True)
    current_weight = Float(required=True)
    quantity = Integer(required=True)
    revalued_at = DateTime(required=True)


@forwarding.event(part_of="OrderItem")
class ItemStatusForced:
    """An administrator set the item status outside the transition table."""

    __version__ = 1

    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    actor_id = String(required=True)
    reason = String(required=True, max_length=500)
    forced_at = DateTime(required=True)
