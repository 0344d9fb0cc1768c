"""Revision domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from forwarding.domain import forwarding


@forwarding.event(part_of="Revision")
class RevisionOpened:
    """A price/weight change needs the customer's decision."""

    __version__ = 1

    revision_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    change_type = String(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)
    previous_weight = Float(required=True)
    new_weight = Float(required=True)
    total_cost_impact = Float(required=True)
    impact_percentage = Float(required=True)
    requires_management_approval = Boolean(default=False)
    customer_response_deadline = DateTime(required=True)
    opened_at = DateTime(required=True)


@forwarding.event(part_of="Revision")
class RevisionAutoApproved:
    """The change fell within the item's thresholds and was approved."""

    __version__ = 1

    revision_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    new_price = Float(required=True)
    new_weight = Float(required=True)
    total_cost_impact = Float(required=True)
    approved_at = DateTime(required=True)


@forwarding.event(part_of="Revision")
class RevisionApproved:
    """The customer accepted the change."""

    __version__ = 1

    revision_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    new_price = Float(required=True)
    new_weight = Float(required=True)
    total_cost_impact = Float(required=True)
    responded_by = String(required=True)
    approved_at = DateTime(required=True)


@forwarding.event(part_of="Revision")
class RevisionRejected:
    """The customer declined the change; the item becomes a cancellation candidate."""

    __version__ = 1

    revision_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    change_type = String(required=True)
    total_cost_impact = Float(required=True)
    responded_by = String(required=True)
    note = String(max_length=1000)
    rejected_at = DateTime(required=True)


@forwarding.event(part_of="Revision")
class RevisionExpired:
    """Nobody answered before the deadline; the change is escalated, not approved."""

    __version__ = 1

    revision_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    change_type = String(required=True)
    total_cost_impact = Float(required=True)
    expired_at = DateTime(required=True)
