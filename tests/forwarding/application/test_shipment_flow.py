"""Application tests for shipments: planning, dispatch, tracking and delivery."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from forwarding.consolidation.planning import ConsolidateOrder, PlanConsolidation
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.item_exception.exception import ExceptionType, ItemException, ResolutionStatus
from forwarding.item_exception.expiry import ExpireExceptions
from forwarding.item_exception.reporting import ReportException
from forwarding.item_exception.response import RespondToException
from forwarding.order.order import Order, OrderStatus
from forwarding.projections.order_summary import OrderSummary
from forwarding.projections.shipment_tracking import ShipmentTrackingView
from forwarding.shared.clock import as_utc
from forwarding.shared.errors import VersionConflict
from forwarding.shipment.handling import (
    AssignTrackingNumber,
    CancelShipment,
    DispatchShipment,
    RecordShipmentMeasurements,
)
from forwarding.shipment.shipment import Shipment, ShipmentKind, ShipmentStatus, Tier
from forwarding.shipment.tracking import RecordTrackingEvent
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

T0 = datetime.now(UTC).replace(microsecond=0) + timedelta(hours=1)


@pytest.fixture()
def order_id(create_order):
    return create_order()


@pytest.fixture()
def shipment_id(order_id, order_items, ready_item):
    """A consolidated shipment holding both items of the order."""
    for item in order_items(order_id):
        ready_item(str(item.id))
    return current_domain.process(ConsolidateOrder(order_id=order_id), asynchronous=False)[0]


@pytest.fixture()
def dispatched(shipment_id):
    current_domain.process(
        DispatchShipment(shipment_id=shipment_id, carrier="DHL", tracking_number="JD0146", dispatched_at=T0),
        asynchronous=False,
    )
    return shipment_id


def _shipment(shipment_id):
    return current_domain.repository_for(Shipment).get(shipment_id)


def _track(status, minutes, shipment_id=None, tracking_number="JD0146", **kwargs):
    return current_domain.process(
        RecordTrackingEvent(
            shipment_id=shipment_id,
            tracking_number=None if shipment_id else tracking_number,
            status=status,
            occurred_at=T0 + timedelta(minutes=minutes),
            **kwargs,
        ),
        asynchronous=False,
    )


class TestPlanning:
    def test_ready_items_bundled_into_one_shipment(self, order_id, shipment_id, order_items):
        shipment = _shipment(shipment_id)
        assert shipment.shipment_kind == ShipmentKind.CONSOLIDATED.value
        assert shipment.origin_warehouse == "us_warehouse"
        assert shipment.current_status == ShipmentStatus.READY_FOR_DISPATCH.value
        assert shipment.current_tier == Tier.SELLER.value
        assert shipment.declared_value == 200.0
        assert all(str(item.consolidation_group_id) == shipment_id for item in order_items(order_id))

    def test_bundled_items_not_planned_again(self, shipment_id, order_id):
        assert current_domain.process(PlanConsolidation(order_id=order_id), asynchronous=False) == 0

    def test_tracking_view_created(self, shipment_id):
        view = current_domain.repository_for(ShipmentTrackingView).get(shipment_id)
        assert view.current_status == "ready_for_dispatch"
        assert json.loads(view.events_json) == []


class TestWarehouseHandling:
    def test_measurements_give_billable_weight(self, shipment_id):
        result = current_domain.process(
            RecordShipmentMeasurements(
                shipment_id=shipment_id, actual_weight_kg=2.0, length_cm=40, width_cm=30, height_cm=20
            ),
            asynchronous=False,
        )
        assert result == {"billable_weight_kg": 4.8}
        assert _shipment(shipment_id).dimensional_weight_kg == 4.8

    def test_actual_weight_wins_when_heavier(self, shipment_id):
        result = current_domain.process(
            RecordShipmentMeasurements(shipment_id=shipment_id, actual_weight_kg=6.5),
            asynchronous=False,
        )
        assert result["billable_weight_kg"] == 6.5

    def test_local_tracking_number_registered(self, shipment_id, carrier):
        current_domain.process(
            AssignTrackingNumber(shipment_id=shipment_id, tier="local", carrier="Pathao", tracking_number="PTH-9"),
            asynchronous=False,
        )
        assert _shipment(shipment_id).local_tracking_number == "PTH-9"
        assert carrier.registrations[0]["tier"] == "local"
        view = current_domain.repository_for(ShipmentTrackingView).get(shipment_id)
        assert json.loads(view.tracking_numbers)["local"] == {"carrier": "Pathao", "tracking_number": "PTH-9"}

    def test_registration_failure_rejects_tracking_number(self, shipment_id, carrier):
        carrier.configure(should_succeed=False, failure_reason="Unknown carrier")
        with pytest.raises(ValidationError):
            current_domain.process(
                AssignTrackingNumber(shipment_id=shipment_id, tier="local", carrier="Nope", tracking_number="X1"),
                asynchronous=False,
            )
        assert _shipment(shipment_id).local_tracking_number is None

    def test_cancel_releases_items_for_replanning(self, order_id, shipment_id, order_items):
        current_domain.process(CancelShipment(shipment_id=shipment_id, reason="Box damaged"), asynchronous=False)
        assert _shipment(shipment_id).current_status == ShipmentStatus.CANCELLED.value
        assert all(item.consolidation_group_id is None for item in order_items(order_id))
        assert current_domain.repository_for(ShipmentTrackingView).get(shipment_id).current_status == "cancelled"

        assert current_domain.process(PlanConsolidation(order_id=order_id), asynchronous=False) == 1


class TestDispatch:
    def test_dispatch_ships_items_and_order(self, order_id, dispatched, order_items, carrier):
        shipment = _shipment(dispatched)
        assert shipment.current_tier == Tier.INTERNATIONAL.value
        assert shipment.current_status == ShipmentStatus.DISPATCHED_INTERNATIONALLY.value
        assert shipment.international_tracking_number == "JD0146"
        assert carrier.registrations[0]["tracking_number"] == "JD0146"

        assert all(item.status == ItemStatus.SHIPPED.value for item in order_items(order_id))
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.SHIPPED.value
        assert as_utc(order.first_shipment_date) == T0
        assert order.counters.shipped_items == 2

    def test_dispatch_only_once(self, dispatched):
        with pytest.raises(ValidationError):
            current_domain.process(
                DispatchShipment(shipment_id=dispatched, carrier="DHL", tracking_number="JD0999"),
                asynchronous=False,
            )

    def test_stale_version_rejected(self, shipment_id):
        with pytest.raises(VersionConflict):
            current_domain.process(
                DispatchShipment(
                    shipment_id=shipment_id, carrier="DHL", tracking_number="JD0146", expected_version=99
                ),
                asynchronous=False,
            )

    def test_dispatch_before_latest_event_rejected(self, shipment_id, carrier):
        with pytest.raises(ValidationError) as exc_info:
            current_domain.process(
                DispatchShipment(
                    shipment_id=shipment_id,
                    carrier="DHL",
                    tracking_number="JD0146",
                    dispatched_at=datetime.now(UTC) - timedelta(days=1),
                ),
                asynchronous=False,
            )
        assert "dispatched_at" in exc_info.value.messages
        assert _shipment(shipment_id).current_tier == Tier.SELLER.value
        assert carrier.registrations == []

    def test_cannot_cancel_after_dispatch(self, dispatched):
        with pytest.raises(ValidationError):
            current_domain.process(CancelShipment(shipment_id=dispatched, reason="Too late"), asynchronous=False)


class TestTracking:
    def test_update_matched_by_tracking_number(self, dispatched):
        result = _track("in_transit_international", 60, external_event_id="dhl-1")
        assert result == {
            "shipment_id": dispatched,
            "outcome": "applied",
            "current_status": "in_transit_international",
            "current_tier": "international",
        }

    def test_redelivered_update_is_duplicate(self, dispatched):
        _track("in_transit_international", 60, external_event_id="dhl-1")
        result = _track("in_transit_international", 60, external_event_id="dhl-1")
        assert result["outcome"] == "duplicate"
        assert len(_shipment(dispatched).tracking_events) == 2

    def test_late_update_logged_without_status_change(self, dispatched):
        _track("at_customs", 120, external_event_id="dhl-2")
        result = _track("in_transit_international", 60, external_event_id="dhl-1")
        assert result["outcome"] == "logged"
        assert result["current_status"] == "at_customs"

    def test_unknown_tracking_number(self, dispatched):
        with pytest.raises(ObjectNotFoundError):
            _track("at_customs", 60, tracking_number="NOPE")

    def test_needs_shipment_or_tracking_number(self, dispatched):
        with pytest.raises(ValidationError):
            _track("at_customs", 60, tracking_number=None)

    def test_customs_hold_raises_exceptions_for_every_item(self, order_id, dispatched, order_items):
        _track("customs_hold", 180, description="Missing invoice")
        assert _shipment(dispatched).exception_status == "customs_hold"
        for item in order_items(order_id):
            exceptions = current_domain.repository_for(ItemException).for_item(str(item.id))
            assert [e.exception_type for e in exceptions] == [ExceptionType.CUSTOMS_ISSUE.value]
            assert str(exceptions[0].shipment_id) == dispatched

    def test_repeated_hold_does_not_duplicate_exceptions(self, order_id, dispatched, order_items):
        _track("customs_hold", 180, external_event_id="dhl-3")
        _track("customs_hold", 200, external_event_id="dhl-4")
        keyboard = str(order_items(order_id)[0].id)
        assert len(current_domain.repository_for(ItemException).for_item(keyboard)) == 1

    def test_clearance_closes_customs_exceptions(self, order_id, dispatched, order_items):
        _track("customs_hold", 180)
        _track("customs_cleared", 240)
        for item in order_items(order_id):
            exceptions = current_domain.repository_for(ItemException).for_item(str(item.id))
            assert [e.resolution_status for e in exceptions] == [ResolutionStatus.CLOSED.value]
            assert exceptions[0].resolution_amount == 0.0

        later = T0 + timedelta(hours=49)
        assert current_domain.process(ExpireExceptions(as_of=later), asynchronous=False) == 0

    def test_delivery_after_missed_attempt_keeps_items(self, order_id, dispatched, order_items, refunds):
        _track("local_facility", 300)
        _track("delivery_attempted", 330)
        _track("delivered", 400)

        later = T0 + timedelta(hours=49)
        assert current_domain.process(ExpireExceptions(as_of=later), asynchronous=False) == 0
        items = order_items(order_id)
        assert len(items) == 2
        assert all(item.status == ItemStatus.DELIVERED.value for item in items)
        assert refunds.calls == []

    def test_damage_report_survives_delivery(self, order_id, dispatched, order_items):
        _track("exception", 180, exception_reason="damaged_in_transit")
        _track("delivered", 400)
        keyboard = str(order_items(order_id)[0].id)
        exceptions = current_domain.repository_for(ItemException).for_item(keyboard)
        assert [e.resolution_status for e in exceptions] == [ResolutionStatus.PENDING.value]

    def test_delivery_completes_items_and_order(self, order_id, dispatched, order_items):
        _track("customs_cleared", 240)
        _track("local_facility", 300, tracking_number="JD0146")
        _track("delivered", 360, location="Kathmandu")

        assert all(item.status == ItemStatus.DELIVERED.value for item in order_items(order_id))
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert as_utc(order.last_delivery_date) == T0 + timedelta(minutes=360)
        summary = current_domain.repository_for(OrderSummary).get(order_id)
        assert summary.delivered_items == 2

        with pytest.raises(ValidationError):
            _track("out_for_delivery", 400)


class TestTrackingView:
    def test_timeline_sorted_by_event_time_and_visible_only(self, dispatched):
        _track("at_customs", 120, external_event_id="dhl-2", location="Kathmandu Airport")
        _track("in_transit_international", 60, external_event_id="dhl-1")
        _track("customs_cleared", 150, external_event_id="int-1", customer_visible=False)

        view = current_domain.repository_for(ShipmentTrackingView).get(dispatched)
        statuses = [event["status"] for event in json.loads(view.events_json)]
        assert statuses == ["dispatched_internationally", "in_transit_international", "at_customs"]
        assert view.current_status == "customs_cleared"
        assert json.loads(view.tracking_numbers)["international"]["tracking_number"] == "JD0146"
        assert as_utc(view.dispatched_at) == T0

    def test_exception_status_cleared_on_progress(self, dispatched):
        _track("customs_hold", 120)
        view = current_domain.repository_for(ShipmentTrackingView).get(dispatched)
        assert view.exception_status == "customs_hold"

        _track("customs_cleared", 180)
        view = current_domain.repository_for(ShipmentTrackingView).get(dispatched)
        assert view.exception_status is None


class TestShippedReplacement:
    def test_replacing_shipped_item_exchanges_it(self, order_id, dispatched, order_items):
        keyboard = str(order_items(order_id)[0].id)
        exception_id = current_domain.process(
            ReportException(
                item_id=keyboard,
                exception_type="damaged_in_transit",
                detected_by="customer_report",
                shipment_id=dispatched,
            ),
            asynchronous=False,
        )
        current_domain.process(
            RespondToException(exception_id=exception_id, actor_id="cust-001", decision="replacement"),
            asynchronous=False,
        )

        original = current_domain.repository_for(OrderItem).get(keyboard)
        assert original.status == ItemStatus.EXCHANGED.value

        items = order_items(order_id)
        assert len(items) == 3
        replacement = items[-1]
        assert replacement.is_replacement is True
        assert replacement.status == ItemStatus.PENDING_ORDER_PLACEMENT.value
        assert replacement.product_name == original.product_name
        assert replacement.current_price == 120.0
