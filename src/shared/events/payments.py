"""Cross-context event contracts published by the payment collaborator.

These classes define the event shape consumed by the forwarding context.
They are registered as external events via domain.register_external_event()
with matching __type__ strings so Protean's stream deserialization works.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Float, Identifier, Integer, String, Text


class PaymentCompleted(BaseEvent):
    """The customer finished paying for a quote."""

    __version__ = 1

    payment_id = Identifier(required=True)
    quote_id = String(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    payment_method = String(required=True)
    quote_snapshot = Text(required=True)  # JSON snapshot produced by the quote engine
    consolidation_preference = String()
    max_consolidation_wait_days = Integer()
    primary_warehouse = String()
    completed_at = DateTime(required=True)
