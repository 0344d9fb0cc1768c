"""Revision aggregate (CQRS) — a price/weight change discovered after placement.

A revision compares freshly scraped seller data with the item's current
values. Small changes are approved automatically; the rest wait for the
customer until a deadline. An unanswered revision expires and is escalated
to the exception workflow; it is never approved by default.

State Machine:
    (opened) → auto_approved
    (opened) → pending → {approved, rejected, expired}
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from forwarding.domain import forwarding
from forwarding.revision.events import (
    RevisionApproved,
    RevisionAutoApproved,
    RevisionExpired,
    RevisionOpened,
    RevisionRejected,
)
from forwarding.shared.clock import has_elapsed
from forwarding.shared.errors import AlreadyResolved, DeadlinePassed
from forwarding.shared.variance import percentage_change, within_auto_approval


class ChangeType(Enum):
    PRICE_INCREASE = "price_increase"
    PRICE_DECREASE = "price_decrease"
    WEIGHT_INCREASE = "weight_increase"
    WEIGHT_DECREASE = "weight_decrease"
    BOTH_INCREASE = "both_increase"
    BOTH_DECREASE = "both_decrease"
    MIXED_CHANGES = "mixed_changes"


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    AUTO_APPROVED = "auto_approved"


class Decision(Enum):
    APPROVE = "approve"
    REJECT = "reject"


_VALID_TRANSITIONS = {
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.EXPIRED},
    ApprovalStatus.APPROVED: set(),
    ApprovalStatus.REJECTED: set(),
    ApprovalStatus.EXPIRED: set(),
    ApprovalStatus.AUTO_APPROVED: set(),
}


def _direction(delta: float) -> int:
    return (delta > 0) - (delta < 0)


def classify_change(price_delta: float, weight_delta: float) -> ChangeType:
    price_dir, weight_dir = _direction(price_delta), _direction(weight_delta)
    if price_dir == 0 and weight_dir == 0:
        raise ValidationError({"new_price": ["Revision requires a price or weight change"]})
    if weight_dir == 0:
        return ChangeType.PRICE_INCREASE if price_dir > 0 else ChangeType.PRICE_DECREASE
    if price_dir == 0:
        return ChangeType.WEIGHT_INCREASE if weight_dir > 0 else ChangeType.WEIGHT_DECREASE
    if price_dir == weight_dir:
        return ChangeType.BOTH_INCREASE if price_dir > 0 else ChangeType.BOTH_DECREASE
    return ChangeType.MIXED_CHANGES


@forwarding.aggregate
class Revision:
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    source_task_id = Identifier()

    # Quote baseline, values at detection and the newly observed values
    original_price = Float(required=True, min_value=0.0)
    original_weight = Float(required=True, min_value=0.0)
    previous_price = Float(required=True, min_value=0.0)
    previous_weight = Float(required=True, min_value=0.0)
    new_price = Float(required=True, min_value=0.0)
    new_weight = Float(required=True, min_value=0.0)
    quantity = Integer(default=1, min_value=1)

    change_type = String(max_length=20, choices=ChangeType)
    price_change_amount = Float(default=0.0)
    price_change_percentage = Float(default=0.0)
    weight_change_amount = Float(default=0.0)
    weight_change_percentage = Float(default=0.0)
    total_cost_impact = Float(default=0.0)
    impact_percentage = Float(default=0.0)

    auto_approval_threshold_amount = Float(default=25.0)
    auto_approval_threshold_percentage = Float(default=5.0)
    auto_approval_eligible = Boolean(default=False)
    requires_management_approval = Boolean(default=False)

    customer_approval_status = String(
        max_length=20,
        choices=ApprovalStatus,
        default=ApprovalStatus.PENDING.value,
    )
    customer_response_deadline = DateTime()
    responded_by = String(max_length=100)
    response_note = Text()
    resolved_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(
        cls,
        item,
        new_price: float,
        new_weight: float,
        response_hours: int,
        management_approval_amount: float,
        source_task_id: str | None = None,
    ):
        """Open a revision of ``item`` and settle it at once if it is within thresholds."""
        now = datetime.now(UTC)
        quantity = item.quantity or 1
        price_delta = round(new_price - item.current_price, 2)
        weight_delta = round(new_weight - item.current_weight, 3)
        cost_impact = round(price_delta * quantity, 2)
        impact_percentage = percentage_change(item.current_price * quantity, new_price * quantity)

        eligible = within_auto_approval(
            cost_impact,
            impact_percentage,
            item.auto_approval_threshold_amount,
            item.auto_approval_threshold_percentage,
        )
        revision = cls(
            item_id=str(item.id),
            order_id=str(item.order_id),
            customer_id=str(item.customer_id),
            source_task_id=source_task_id,
            original_price=item.original_price,
            original_weight=item.original_weight,
            previous_price=item.current_price,
            previous_weight=item.current_weight,
            new_price=new_price,
            new_weight=new_weight,
            quantity=quantity,
            change_type=classify_change(price_delta, weight_delta).value,
            price_change_amount=price_delta,
            price_change_percentage=percentage_change(item.current_price, new_price),
            weight_change_amount=weight_delta,
            weight_change_percentage=percentage_change(item.current_weight, new_weight),
            total_cost_impact=cost_impact,
            impact_percentage=impact_percentage,
            auto_approval_threshold_amount=item.auto_approval_threshold_amount,
            auto_approval_threshold_percentage=item.auto_approval_threshold_percentage,
            auto_approval_eligible=eligible,
            requires_management_approval=abs(cost_impact) >= management_approval_amount,
            created_at=now,
            updated_at=now,
        )

        if eligible:
            revision.customer_approval_status = ApprovalStatus.AUTO_APPROVED.value
            revision.resolved_at = now
            revision.raise_(
                RevisionAutoApproved(
                    revision_id=str(revision.id),
                    item_id=revision.item_id,
                    order_id=revision.order_id,
                    new_price=new_price,
                    new_weight=new_weight,
                    total_cost_impact=cost_impact,
                    approved_at=now,
                )
            )
            return revision

        revision.customer_approval_status = ApprovalStatus.PENDING.value
        revision.customer_response_deadline = now + timedelta(hours=response_hours)
        revision.raise_(
            RevisionOpened(
                revision_id=str(revision.id),
                item_id=revision.item_id,
                order_id=revision.order_id,
                customer_id=revision.customer_id,
                change_type=revision.change_type,
                previous_price=revision.previous_price,
                new_price=new_price,
                previous_weight=revision.previous_weight,
                new_weight=new_weight,
                total_cost_impact=cost_impact,
                impact_percentage=impact_percentage,
                requires_management_approval=revision.requires_management_approval,
                customer_response_deadline=revision.customer_response_deadline,
                opened_at=now,
            )
        )
        return revision

    @property
    def is_open(self) -> bool:
        return ApprovalStatus(self.customer_approval_status) == ApprovalStatus.PENDING

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: ApprovalStatus) -> None:
        current = ApprovalStatus(self.customer_approval_status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"customer_approval_status": [f"Cannot transition from {current.value} to {target.value}"]}
            )

    # -------------------------------------------------------------------
    # Customer response
    # -------------------------------------------------------------------
    def respond(self, decision: Decision, actor_id: str, note: str | None = None, as_of: datetime | None = None):
        now = as_of or datetime.now(UTC)
        if not self.is_open:
            raise AlreadyResolved(f"Revision {self.id} is already {self.customer_approval_status}")
        if has_elapsed(self.customer_response_deadline, now):
            raise DeadlinePassed(f"Revision {self.id} response deadline has passed")

        self.responded_by = actor_id
        self.response_note = note
        self.resolved_at = now
        self.updated_at = now

        if decision == Decision.APPROVE:
            self._assert_can_transition(ApprovalStatus.APPROVED)
            self.customer_approval_status = ApprovalStatus.APPROVED.value
            self.raise_(
                RevisionApproved(
                    revision_id=str(self.id),
                    item_id=str(self.item_id),
                    order_id=str(self.order_id),
                    new_price=self.new_price,
                    new_weight=self.new_weight,
                    total_cost_impact=self.total_cost_impact,
                    responded_by=actor_id,
                    approved_at=now,
                )
            )
        else:
            self._assert_can_transition(ApprovalStatus.REJECTED)
            self.customer_approval_status = ApprovalStatus.REJECTED.value
            self.raise_(
                RevisionRejected(
                    revision_id=str(self.id),
                    item_id=str(self.item_id),
                    order_id=str(self.order_id),
                    change_type=self.change_type,
                    total_cost_impact=self.total_cost_impact,
                    responded_by=actor_id,
                    note=note,
                    rejected_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Deadline
    # -------------------------------------------------------------------
    def is_overdue(self, as_of: datetime) -> bool:
        return self.is_open and has_elapsed(self.customer_response_deadline, as_of)

    def expire(self, as_of: datetime | None = None) -> None:
        now = as_of or datetime.now(UTC)
        if not self.is_overdue(now):
            raise ValidationError({"customer_response_deadline": ["Revision deadline has not passed"]})
        self._assert_can_transition(ApprovalStatus.EXPIRED)
        self.customer_approval_status = ApprovalStatus.EXPIRED.value
        self.resolved_at = now
        self.updated_at = now
        self.raise_(
            RevisionExpired(
                revision_id=str(self.id),
                item_id=str(self.item_id),
                order_id=str(self.order_id),
                change_type=self.change_type,
                total_cost_impact=self.total_cost_impact,
                expired_at=now,
            )
        )
