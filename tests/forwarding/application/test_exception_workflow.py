"""Application tests for reporting, answering and settling item exceptions."""

from datetime import UTC, datetime, timedelta

import pytest
from forwarding.automation.task import AutomationTask, TaskStatus, TaskType
from forwarding.item.arrival import RecordWarehouseArrival
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.item.quality import RecordQualityCheck
from forwarding.item_exception.exception import (
    ExceptionType,
    ItemException,
    Resolution,
    ResolutionStatus,
    Severity,
)
from forwarding.item_exception.expiry import ExpireExceptions
from forwarding.item_exception.reporting import ReportException
from forwarding.item_exception.response import (
    AcknowledgeException,
    CloseException,
    EscalateException,
    ResolveException,
    RespondToException,
)
from forwarding.order.order import Order
from forwarding.projections.order_summary import OrderSummary
from forwarding.shared.clock import as_utc
from forwarding.shared.errors import AlreadyResolved, CapabilityRequired
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def placed_keyboard(create_order, order_items, place_item):
    item_id = str(order_items(create_order())[0].id)
    place_item(item_id)
    return item_id


@pytest.fixture()
def failed_inspection(placed_keyboard):
    """Keyboard that failed its warehouse inspection."""
    current_domain.process(
        RecordWarehouseArrival(item_id=placed_keyboard, warehouse="us_warehouse", arrived_at=datetime.now(UTC)),
        asynchronous=False,
    )
    current_domain.process(
        RecordQualityCheck(item_id=placed_keyboard, passed=False, inspector="Priya", notes="Cracked keycaps"),
        asynchronous=False,
    )
    return placed_keyboard


def _report(item_id, exception_type="seller_out_of_stock", detected_by="seller_notification", **kwargs):
    exception_id = current_domain.process(
        ReportException(item_id=item_id, exception_type=exception_type, detected_by=detected_by, **kwargs),
        asynchronous=False,
    )
    return _exception(exception_id)


def _respond(exc, decision, amount=None, note=None):
    return current_domain.process(
        RespondToException(exception_id=str(exc.id), actor_id="cust-001", decision=decision, amount=amount, note=note),
        asynchronous=False,
    )


def _exception(exception_id):
    return current_domain.repository_for(ItemException).get(str(exception_id))


def _item(item_id):
    return current_domain.repository_for(OrderItem).get(item_id)


def _order_of(item_id):
    return current_domain.repository_for(Order).get(str(_item(item_id).order_id))


class TestReporting:
    def test_reported_exception_is_classified(self, placed_keyboard):
        exc = _report(placed_keyboard, description="Seller ran out of stock")
        assert exc.resolution_status == ResolutionStatus.PENDING.value
        assert exc.severity == Severity.MEDIUM.value
        assert exc.recommended_resolution == Resolution.REFUND.value
        assert exc.item_value == 120.0
        assert as_utc(exc.customer_response_deadline) > datetime.now(UTC) + timedelta(hours=47)

    def test_recommendation_must_be_offered(self, placed_keyboard):
        with pytest.raises(ValidationError):
            _report(placed_keyboard, recommended_resolution="replacement")

    def test_failed_inspection_reports_quality_exception(self, failed_inspection):
        exceptions = current_domain.repository_for(ItemException).for_item(failed_inspection)
        assert len(exceptions) == 1
        exc = exceptions[0]
        assert exc.exception_type == ExceptionType.QUALITY_CHECK_FAILED.value
        assert exc.severity == Severity.HIGH.value
        assert exc.description == "Cracked keycaps"
        assert exc.recommended_resolution == Resolution.REPLACEMENT.value
        assert _item(failed_inspection).status == ItemStatus.QUALITY_CHECK_FAILED.value


class TestCustomerResponse:
    def test_refund_settles_item_and_order(self, placed_keyboard, refunds):
        exc = _report(placed_keyboard)
        result = _respond(exc, "refund")
        assert result["resolution_status"] == ResolutionStatus.RESOLVED.value
        assert result["resolution_amount"] == 120.0

        item = _item(placed_keyboard)
        assert item.status == ItemStatus.REFUNDED.value
        assert item.refund_amount == 120.0
        assert refunds.calls[0]["item_id"] == placed_keyboard
        assert refunds.calls[0]["amount"] == 120.0

        order = _order_of(placed_keyboard)
        assert order.total_refunded == 120.0
        assert order.payment_status == "partially_refunded"
        assert current_domain.repository_for(OrderSummary).get(str(order.id)).total_refunded == 120.0

    def test_store_credit_cancels_item(self, placed_keyboard, refunds):
        _respond(_report(placed_keyboard), "store_credit")
        item = _item(placed_keyboard)
        assert item.status == ItemStatus.CANCELLED.value
        assert refunds.calls == []

    def test_partial_refund_accepts_failed_inspection(self, failed_inspection, refunds):
        exc = current_domain.repository_for(ItemException).for_item(failed_inspection)[0]
        _respond(exc, "partial_refund_keep", amount=30.0, note="Keycaps are fine for me")
        item = _item(failed_inspection)
        assert item.status == ItemStatus.QUALITY_CHECK_PASSED.value
        assert item.quality_check_status == "passed"
        assert item.refund_amount == 30.0
        assert refunds.calls[0]["amount"] == 30.0
        assert _order_of(failed_inspection).total_refunded == 30.0

    def test_replacement_restarts_placement(self, failed_inspection):
        exc = current_domain.repository_for(ItemException).for_item(failed_inspection)[0]
        _respond(exc, "replacement")
        item = _item(failed_inspection)
        assert item.status == ItemStatus.PENDING_ORDER_PLACEMENT.value
        assert item.is_replacement is True
        assert item.seller_order_id is None

        placements = [
            t
            for t in current_domain.repository_for(AutomationTask).for_item(failed_inspection)
            if t.task_type == TaskType.ORDER_PLACEMENT.value
        ]
        assert [t.status for t in placements] == [TaskStatus.COMPLETED.value, TaskStatus.RUNNING.value]

    def test_choice_must_be_offered(self, placed_keyboard):
        with pytest.raises(ValidationError):
            _respond(_report(placed_keyboard), "replacement")

    def test_second_answer_rejected(self, placed_keyboard):
        exc = _report(placed_keyboard)
        _respond(exc, "store_credit")
        with pytest.raises(AlreadyResolved):
            _respond(exc, "refund")

    def test_rejected_refund_request_does_not_undo_resolution(self, placed_keyboard, refunds):
        refunds.configure(should_succeed=False, failure_reason="Payment voided")
        exc = _report(placed_keyboard)
        _respond(exc, "refund")
        assert _exception(exc.id).resolution_status == ResolutionStatus.RESOLVED.value
        assert _item(placed_keyboard).status == ItemStatus.REFUNDED.value


class TestStaffHandling:
    def test_acknowledge_then_resolve_then_close(self, placed_keyboard):
        exc = _report(placed_keyboard)
        current_domain.process(
            AcknowledgeException(exception_id=str(exc.id), actor_id="staff-7", actor_role="staff"),
            asynchronous=False,
        )
        assert _exception(exc.id).resolution_status == ResolutionStatus.IN_PROGRESS.value
        assert _exception(exc.id).handled_by == "staff-7"

        current_domain.process(
            ResolveException(
                exception_id=str(exc.id),
                actor_id="staff-7",
                actor_role="staff",
                resolution="alternative_source",
                notes="Found another seller",
            ),
            asynchronous=False,
        )
        assert _exception(exc.id).resolved_by == "staff-7"
        item = _item(placed_keyboard)
        assert item.status == ItemStatus.PENDING_ORDER_PLACEMENT.value
        assert item.is_replacement is True

        current_domain.process(
            CloseException(exception_id=str(exc.id), actor_id="staff-7", actor_role="staff"),
            asynchronous=False,
        )
        assert _exception(exc.id).resolution_status == ResolutionStatus.CLOSED.value

    def test_close_requires_resolution(self, placed_keyboard):
        exc = _report(placed_keyboard)
        with pytest.raises(ValidationError):
            current_domain.process(
                CloseException(exception_id=str(exc.id), actor_id="staff-7", actor_role="staff"),
                asynchronous=False,
            )

    def test_customer_cannot_escalate(self, placed_keyboard):
        exc = _report(placed_keyboard)
        with pytest.raises(CapabilityRequired):
            current_domain.process(
                EscalateException(exception_id=str(exc.id), actor_id="cust-001", actor_role="customer"),
                asynchronous=False,
            )

    def test_customer_cannot_resolve_for_staff(self, placed_keyboard):
        exc = _report(placed_keyboard)
        with pytest.raises(CapabilityRequired):
            current_domain.process(
                ResolveException(
                    exception_id=str(exc.id), actor_id="cust-001", actor_role="customer", resolution="refund"
                ),
                asynchronous=False,
            )


class TestExpiry:
    def test_overdue_exception_gets_recommended_resolution(self, placed_keyboard, refunds):
        exc = _report(placed_keyboard, exception_type="seller_cancelled")
        later = datetime.now(UTC) + timedelta(hours=49)
        assert current_domain.process(ExpireExceptions(as_of=later), asynchronous=False) == 1

        exc = _exception(exc.id)
        assert exc.resolution_status == ResolutionStatus.RESOLVED.value
        assert exc.resolution_method == Resolution.REFUND.value
        assert exc.resolved_by == "system"
        assert "no customer response" in exc.resolution_notes
        assert _item(placed_keyboard).status == ItemStatus.REFUNDED.value
        assert refunds.calls[0]["amount"] == 120.0

    def test_nothing_due(self, placed_keyboard):
        _report(placed_keyboard)
        assert current_domain.process(ExpireExceptions(as_of=datetime.now(UTC)), asynchronous=False) == 0

    def test_escalated_exception_left_to_staff(self, placed_keyboard):
        exc = _report(placed_keyboard)
        current_domain.process(
            EscalateException(exception_id=str(exc.id), actor_id="staff-7", actor_role="staff", reason="VIP"),
            asynchronous=False,
        )
        later = datetime.now(UTC) + timedelta(hours=49)
        assert current_domain.process(ExpireExceptions(as_of=later), asynchronous=False) == 0
        assert _exception(exc.id).resolution_status == ResolutionStatus.ESCALATED.value
        assert _item(placed_keyboard).status == ItemStatus.SELLER_ORDER_PLACED.value

    def test_partial_refund_without_amount_falls_back_once(self, placed_keyboard, refunds):
        exc = _report(
            placed_keyboard,
            exception_type="customer_complaint",
            detected_by="customer_report",
            recommended_resolution="partial_refund_keep",
        )
        later = datetime.now(UTC) + timedelta(hours=49)
        assert current_domain.process(ExpireExceptions(as_of=later), asynchronous=False) == 1
        assert _exception(exc.id).resolution_method == Resolution.REFUND.value
        assert current_domain.process(ExpireExceptions(as_of=later), asynchronous=False) == 0
