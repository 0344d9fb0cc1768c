"""Tests for the Revision aggregate — thresholds, responses and deadlines."""

from datetime import UTC, datetime, timedelta

import pytest
from forwarding.item.item import OrderItem
from forwarding.revision.events import RevisionApproved, RevisionAutoApproved, RevisionExpired, RevisionOpened
from forwarding.revision.revision import ApprovalStatus, ChangeType, Decision, Revision, classify_change
from forwarding.shared.errors import AlreadyResolved, DeadlinePassed
from forwarding.shared.variance import percentage_change, within_auto_approval
from protean.exceptions import ValidationError


def _placed_item(price=500.0, weight=2.0, quantity=1):
    item = OrderItem.create(
        "ord-001",
        "cust-001",
        {"product_name": "Camera lens", "price": price, "weight": weight, "quantity": quantity},
    )
    item.record_seller_order("SO-1")
    return item


def _open(item, new_price, new_weight=None, hours=48):
    return Revision.open(
        item,
        new_price=new_price,
        new_weight=item.current_weight if new_weight is None else new_weight,
        response_hours=hours,
        management_approval_amount=100.0,
    )


class TestVariance:
    def test_percentage_change(self):
        assert percentage_change(500.0, 520.0) == 4.0
        assert percentage_change(500.0, 470.0) == -6.0

    def test_zero_baseline(self):
        assert percentage_change(0.0, 0.0) == 0.0
        assert percentage_change(0.0, 5.0) == 100.0

    def test_either_threshold_is_enough(self):
        assert within_auto_approval(30.0, 3.0, 25.0, 5.0) is True
        assert within_auto_approval(20.0, 40.0, 25.0, 5.0) is True
        assert within_auto_approval(30.0, 6.0, 25.0, 5.0) is False


class TestClassification:
    @pytest.mark.parametrize(
        "price_delta, weight_delta, expected",
        [
            (10.0, 0.0, ChangeType.PRICE_INCREASE),
            (-10.0, 0.0, ChangeType.PRICE_DECREASE),
            (0.0, 0.5, ChangeType.WEIGHT_INCREASE),
            (5.0, 0.5, ChangeType.BOTH_INCREASE),
            (-5.0, -0.5, ChangeType.BOTH_DECREASE),
            (5.0, -0.5, ChangeType.MIXED_CHANGES),
        ],
    )
    def test_change_type(self, price_delta, weight_delta, expected):
        assert classify_change(price_delta, weight_delta) == expected

    def test_no_change_rejected(self):
        with pytest.raises(ValidationError):
            classify_change(0.0, 0.0)


class TestAutoApproval:
    def test_small_increase_auto_approved(self):
        revision = _open(_placed_item(), 520.0)
        assert revision.customer_approval_status == ApprovalStatus.AUTO_APPROVED.value
        assert revision.auto_approval_eligible is True
        assert revision.total_cost_impact == 20.0
        assert revision.impact_percentage == 4.0
        assert revision.resolved_at is not None
        assert isinstance(revision._events[0], RevisionAutoApproved)

    def test_ten_dollar_increase_auto_approved(self):
        revision = _open(_placed_item(), 510.0)
        assert revision.customer_approval_status == ApprovalStatus.AUTO_APPROVED.value

    def test_beyond_both_thresholds_waits_for_customer(self):
        revision = _open(_placed_item(), 530.0)
        assert revision.customer_approval_status == ApprovalStatus.PENDING.value
        assert revision.total_cost_impact == 30.0
        assert revision.impact_percentage == 6.0
        assert revision.customer_response_deadline is not None
        assert isinstance(revision._events[0], RevisionOpened)

    def test_cost_impact_scales_with_quantity(self):
        revision = _open(_placed_item(price=100.0, quantity=3), 110.0)
        assert revision.total_cost_impact == 30.0
        assert revision.customer_approval_status == ApprovalStatus.PENDING.value

    def test_weight_only_change_has_no_cost_impact(self):
        revision = _open(_placed_item(), 500.0, new_weight=3.0)
        assert revision.change_type == ChangeType.WEIGHT_INCREASE.value
        assert revision.total_cost_impact == 0.0
        assert revision.customer_approval_status == ApprovalStatus.AUTO_APPROVED.value

    def test_large_change_needs_management(self):
        revision = _open(_placed_item(), 650.0)
        assert revision.requires_management_approval is True

    def test_deltas_measured_against_current_values(self):
        item = _placed_item()
        item.begin_revision()
        item.approve_revision(new_price=520.0, new_weight=2.0)
        revision = _open(item, 540.0)
        assert revision.previous_price == 520.0
        assert revision.original_price == 500.0
        assert revision.price_change_amount == 20.0


class TestCustomerResponse:
    def test_approve(self):
        revision = _open(_placed_item(), 560.0)
        revision._events.clear()
        revision.respond(Decision.APPROVE, "cust-001", note="Fine")
        assert revision.customer_approval_status == ApprovalStatus.APPROVED.value
        assert revision.responded_by == "cust-001"
        assert isinstance(revision._events[0], RevisionApproved)

    def test_reject(self):
        revision = _open(_placed_item(), 560.0)
        revision.respond(Decision.REJECT, "cust-001")
        assert revision.customer_approval_status == ApprovalStatus.REJECTED.value

    def test_second_response_rejected(self):
        revision = _open(_placed_item(), 560.0)
        revision.respond(Decision.APPROVE, "cust-001")
        with pytest.raises(AlreadyResolved):
            revision.respond(Decision.REJECT, "cust-001")

    def test_auto_approved_cannot_be_answered(self):
        revision = _open(_placed_item(), 505.0)
        with pytest.raises(AlreadyResolved):
            revision.respond(Decision.REJECT, "cust-001")

    def test_late_response_rejected(self):
        revision = _open(_placed_item(), 560.0, hours=48)
        late = datetime.now(UTC) + timedelta(hours=49)
        with pytest.raises(DeadlinePassed):
            revision.respond(Decision.APPROVE, "cust-001", as_of=late)


class TestExpiry:
    def test_expire_after_deadline(self):
        revision = _open(_placed_item(), 560.0, hours=48)
        revision._events.clear()
        later = datetime.now(UTC) + timedelta(hours=48, minutes=1)
        assert revision.is_overdue(later)
        revision.expire(later)
        assert revision.customer_approval_status == ApprovalStatus.EXPIRED.value
        assert isinstance(revision._events[0], RevisionExpired)

    def test_cannot_expire_early(self):
        revision = _open(_placed_item(), 560.0, hours=48)
        with pytest.raises(ValidationError):
            revision.expire(datetime.now(UTC) + timedelta(hours=1))

    def test_answered_revision_is_never_overdue(self):
        revision = _open(_placed_item(), 560.0, hours=48)
        revision.respond(Decision.APPROVE, "cust-001")
        assert revision.is_overdue(datetime.now(UTC) + timedelta(days=10)) is False
