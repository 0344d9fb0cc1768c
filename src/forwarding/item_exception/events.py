"""ItemException domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from forwarding.domain import forwarding


@forwarding.event(part_of="ItemException")
class ExceptionReported:
    """An anomaly on an item was detected and awaits a resolution."""

    __version__ = 1

    exception_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    shipment_id = Identifier()
    exception_type = String(required=True)
    severity = String(required=True)
    detected_by = String(required=True)
    title = String(max_length=200)
    available_resolutions = Text(required=True)  # JSON list
    recommended_resolution = String(required=True)
    financial_impact = Float(default=0.0)
    customer_response_deadline = DateTime(required=True)
    reported_at = DateTime(required=True)


@forwarding.event(part_of="ItemException")
class ExceptionAcknowledged:
    """Staff started working on the exception."""

    __version__ = 1

    exception_id = Identifier(required=True)
    item_id = Identifier(required=True)
    acknowledged_by = String(required=True)
    acknowledged_at = DateTime(required=True)


@forwarding.event(part_of="ItemException")
class ExceptionEscalated:
    """Staff took the exception out of the automatic deadline policy."""

    __version__ = 1

    exception_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    severity = String(required=True)
    escalated_by = String(required=True)
    reason = String(max_length=1000)
    escalated_at = DateTime(required=True)


@forwarding.event(part_of="ItemException")
class ExceptionResolved:
    """A resolution was chosen; the item and payment sides must apply it."""

    __version__ = 1

    exception_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    exception_type = String(required=True)
    resolution_method = String(required=True)
    resolution_amount = Float(default=0.0)
    resolved_by = String(required=True)
    auto_resolved = Boolean(default=False)
    resolved_at = DateTime(required=True)


@forwarding.event(part_of="ItemException")
class ExceptionClosed:
    __version__ = 1

    exception_id = Identifier(required=True)
    item_id = Identifier(required=True)
    closed_by = String(required=True)
    closed_at = DateTime(required=True)
