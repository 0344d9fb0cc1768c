"""Shipment domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from forwarding.domain import forwarding


@forwarding.event(part_of="Shipment")
class ShipmentCreated:
    """The planner bundled warehouse-resident items into a shipment."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    origin_warehouse = String(required=True)
    shipment_kind = String(required=True)
    item_ids = Text(required=True)  # JSON list of OrderItem ids
    estimated_weight_kg = Float()
    created_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class ShipmentMeasured:
    __version__ = 1

    shipment_id = Identifier(required=True)
    actual_weight_kg = Float(required=True)
    dimensional_weight_kg = Float()
    billable_weight_kg = Float(required=True)
    measured_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class TrackingNumberAssigned:
    """A carrier tracking number was attached to one tier of the shipment."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    tier = String(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    assigned_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class TrackingEventRecorded:
    """A carrier update was appended to the shipment's event log."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tier = String(required=True)
    status = String(required=True)
    event_type = String()
    description = String(max_length=500)
    location = String(max_length=200)
    data_source = String(required=True)
    external_event_id = String()
    customer_visible = Boolean(default=True)
    applied = Boolean(required=True)  # False when logged without moving the status
    current_status = String(required=True)
    current_tier = String(required=True)
    occurred_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class ShipmentDispatched:
    """The shipment left the warehouse on its international leg."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    item_ids = Text(required=True)
    international_carrier = String()
    international_tracking_number = String()
    dispatched_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class ShipmentExceptionFlagged:
    """A carrier reported a hold, damage or failed delivery."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_ids = Text(required=True)
    exception_status = String(required=True)
    description = String(max_length=500)
    flagged_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class ShipmentExceptionCleared:
    """A later carrier update showed the shipment moving again."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_exception_status = String(required=True)
    status = String(required=True)
    cleared_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class ShipmentDelivered:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    item_ids = Text(required=True)
    delivered_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class ShipmentCancelled:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_ids = Text(required=True)
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)
