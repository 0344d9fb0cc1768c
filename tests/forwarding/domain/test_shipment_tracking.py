"""Tests for Shipment creation, three-tier tracking and measurements."""

from datetime import UTC, datetime, timedelta

import pytest
from forwarding.item.item import OrderItem
from forwarding.shipment.events import (
    ShipmentCancelled,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentDispatched,
    ShipmentExceptionCleared,
    ShipmentExceptionFlagged,
)
from forwarding.shipment.shipment import (
    DataSource,
    ExceptionStatus,
    Shipment,
    ShipmentKind,
    ShipmentStatus,
    Tier,
    TrackingOutcome,
    tier_of,
)
from protean.exceptions import ValidationError

T0 = datetime.now(UTC).replace(microsecond=0) + timedelta(hours=1)
S = ShipmentStatus


def _item(price=50.0, weight=1.0, quantity=1):
    return OrderItem.create(
        "ord-001",
        "cust-001",
        {"product_name": "Book", "price": price, "weight": weight, "quantity": quantity},
    )


def _make_shipment(items=None, kind=ShipmentKind.CONSOLIDATED):
    items = items or [_item(50.0, 1.0), _item(20.0, 0.5, quantity=2)]
    return Shipment.create(
        order_id="ord-001",
        customer_id="cust-001",
        origin_warehouse="us_warehouse",
        order_items=items,
        shipment_kind=kind,
        destination_country="NP",
    )


def _track(shipment, status, minutes=0, external_id=None, **kwargs):
    return shipment.record_tracking_event(
        status,
        occurred_at=T0 + timedelta(minutes=minutes),
        data_source=DataSource.WEBHOOK,
        external_event_id=external_id,
        **kwargs,
    )


class TestCreation:
    def test_totals_from_items(self):
        shipment = _make_shipment()
        assert shipment.estimated_weight_kg == 1.5
        assert shipment.declared_value == 90.0
        assert len(shipment.items) == 2
        assert shipment.current_status == S.READY_FOR_DISPATCH.value
        assert shipment.current_tier == Tier.SELLER.value
        assert isinstance(shipment._events[0], ShipmentCreated)
        assert shipment.latest_event_at == shipment.created_at

    def test_measured_weight_preferred(self):
        item = _item(weight=1.0)
        item.actual_weight = 1.3
        shipment = _make_shipment([item], kind=ShipmentKind.DIRECT)
        assert shipment.estimated_weight_kg == 1.3

    def test_needs_items(self):
        with pytest.raises(ValidationError):
            _make_shipment(items=[])

    def test_item_only_once(self):
        item = _item()
        with pytest.raises(ValidationError):
            _make_shipment(items=[item, item])


class TestTierMapping:
    def test_tiers(self):
        assert tier_of(S.READY_FOR_DISPATCH) == Tier.SELLER
        assert tier_of(S.AT_CUSTOMS) == Tier.INTERNATIONAL
        assert tier_of(S.OUT_FOR_DELIVERY) == Tier.LOCAL
        assert tier_of(S.EXCEPTION) is None


class TestTrackingProjection:
    def test_forward_event_applied(self):
        shipment = _make_shipment()
        assert _track(shipment, S.DISPATCHED_INTERNATIONALLY, 0) == TrackingOutcome.APPLIED
        assert shipment.current_status == S.DISPATCHED_INTERNATIONALLY.value
        assert shipment.current_tier == Tier.INTERNATIONAL.value
        assert shipment.international_dispatch_date == T0

    def test_duplicate_is_idempotent(self):
        shipment = _make_shipment()
        _track(shipment, S.AT_CUSTOMS, 10, external_id="evt-1")
        assert _track(shipment, S.AT_CUSTOMS, 10, external_id="evt-1") == TrackingOutcome.DUPLICATE
        assert len(shipment.tracking_events) == 1

    def test_same_status_at_new_time_is_not_duplicate(self):
        shipment = _make_shipment()
        _track(shipment, S.IN_TRANSIT_INTERNATIONAL, 10)
        assert _track(shipment, S.IN_TRANSIT_INTERNATIONAL, 20) == TrackingOutcome.APPLIED
        assert len(shipment.tracking_events) == 2

    def test_earlier_tier_is_logged_only(self):
        shipment = _make_shipment()
        _track(shipment, S.LOCAL_FACILITY, 60)
        assert _track(shipment, S.IN_TRANSIT_INTERNATIONAL, 90) == TrackingOutcome.LOGGED
        assert shipment.current_status == S.LOCAL_FACILITY.value
        assert shipment.current_tier == Tier.LOCAL.value
        assert len(shipment.tracking_events) == 2

    def test_older_event_is_logged_only(self):
        shipment = _make_shipment()
        _track(shipment, S.AT_CUSTOMS, 60)
        assert _track(shipment, S.IN_TRANSIT_INTERNATIONAL, 30) == TrackingOutcome.LOGGED
        assert shipment.current_status == S.AT_CUSTOMS.value
        assert shipment.latest_event_at == T0 + timedelta(minutes=60)

    def test_timeline_ordered_by_occurrence(self):
        shipment = _make_shipment()
        _track(shipment, S.AT_CUSTOMS, 60)
        _track(shipment, S.IN_TRANSIT_INTERNATIONAL, 30)
        _track(shipment, S.DISPATCHED_INTERNATIONALLY, 0)
        assert [e.status for e in shipment.timeline] == [
            S.DISPATCHED_INTERNATIONALLY.value,
            S.IN_TRANSIT_INTERNATIONAL.value,
            S.AT_CUSTOMS.value,
        ]

    def test_seller_event_from_before_creation_is_logged_only(self):
        shipment = _make_shipment()
        earlier = datetime.now(UTC) - timedelta(days=2)
        outcome = shipment.record_tracking_event(
            S.SELLER_SHIPPED, occurred_at=earlier, data_source=DataSource.API_SCRAPE
        )
        assert outcome == TrackingOutcome.LOGGED
        assert shipment.current_status == S.READY_FOR_DISPATCH.value
        assert shipment.seller_shipped_date is None

    def test_cancelled_is_not_a_tracking_update(self):
        shipment = _make_shipment()
        with pytest.raises(ValidationError):
            _track(shipment, S.CANCELLED, 0)


class TestTrackingEvents:
    def test_dispatch_raised_once(self):
        shipment = _make_shipment()
        shipment._events.clear()
        _track(shipment, S.DISPATCHED_INTERNATIONALLY, 0)
        _track(shipment, S.AT_CUSTOMS, 30)
        dispatched = [e for e in shipment._events if isinstance(e, ShipmentDispatched)]
        assert len(dispatched) == 1
        assert dispatched[0].dispatched_at == T0

    def test_customs_hold_flags_exception(self):
        shipment = _make_shipment()
        _track(shipment, S.DISPATCHED_INTERNATIONALLY, 0)
        shipment._events.clear()
        _track(shipment, S.CUSTOMS_HOLD, 30, description="Missing invoice")
        assert shipment.exception_status == ExceptionStatus.CUSTOMS_HOLD.value
        flagged = [e for e in shipment._events if isinstance(e, ShipmentExceptionFlagged)]
        assert flagged[0].description == "Missing invoice"

    def test_clearance_resets_exception(self):
        shipment = _make_shipment()
        _track(shipment, S.CUSTOMS_HOLD, 0)
        _track(shipment, S.CUSTOMS_CLEARED, 30)
        assert shipment.exception_status is None
        assert shipment.customs_cleared_date == T0 + timedelta(minutes=30)

    def test_clearance_raises_cleared_event(self):
        shipment = _make_shipment()
        _track(shipment, S.DELIVERY_ATTEMPTED, 0)
        shipment._events.clear()
        _track(shipment, S.DELIVERED, 30)
        cleared = [e for e in shipment._events if isinstance(e, ShipmentExceptionCleared)]
        assert len(cleared) == 1
        assert cleared[0].previous_exception_status == ExceptionStatus.CUSTOMER_NOT_AVAILABLE.value
        assert cleared[0].status == S.DELIVERED.value

    def test_no_cleared_event_without_prior_exception(self):
        shipment = _make_shipment()
        shipment._events.clear()
        _track(shipment, S.DISPATCHED_INTERNATIONALLY, 0)
        assert not any(isinstance(e, ShipmentExceptionCleared) for e in shipment._events)

    def test_explicit_exception_reason(self):
        shipment = _make_shipment()
        _track(shipment, S.EXCEPTION, 0, exception_reason=ExceptionStatus.DAMAGED_IN_TRANSIT)
        assert shipment.exception_status == ExceptionStatus.DAMAGED_IN_TRANSIT.value

    def test_delivered(self):
        shipment = _make_shipment()
        _track(shipment, S.OUT_FOR_DELIVERY, 0)
        shipment._events.clear()
        _track(shipment, S.DELIVERED, 30)
        assert shipment.delivered_date == T0 + timedelta(minutes=30)
        assert any(isinstance(e, ShipmentDelivered) for e in shipment._events)


class TestImmutability:
    def test_delivered_shipment_rejects_updates(self):
        shipment = _make_shipment()
        _track(shipment, S.DELIVERED, 0)
        with pytest.raises(ValidationError):
            _track(shipment, S.OUT_FOR_DELIVERY, 30)

    def test_replayed_event_on_delivered_shipment_is_duplicate(self):
        shipment = _make_shipment()
        _track(shipment, S.DELIVERED, 0, external_id="evt-9")
        assert _track(shipment, S.DELIVERED, 0, external_id="evt-9") == TrackingOutcome.DUPLICATE

    def test_cancel_before_dispatch(self):
        shipment = _make_shipment()
        shipment._events.clear()
        shipment.cancel("Customer changed address")
        assert shipment.current_status == S.CANCELLED.value
        assert isinstance(shipment._events[0], ShipmentCancelled)
        with pytest.raises(ValidationError):
            shipment.assign_tracking(Tier.INTERNATIONAL, "DHL", "JD0001")

    def test_cannot_cancel_after_dispatch(self):
        shipment = _make_shipment()
        _track(shipment, S.DISPATCHED_INTERNATIONALLY, 0)
        with pytest.raises(ValidationError):
            shipment.cancel("Too late")


class TestMeasurements:
    def test_dimensional_weight_wins(self):
        shipment = _make_shipment()
        shipment.record_measurements(10.0, 50.0, 40.0, 30.0, divisor=5000)
        assert shipment.dimensional_weight_kg == 12.0
        assert shipment.billable_weight_kg == 12.0

    def test_actual_weight_wins(self):
        shipment = _make_shipment()
        shipment.record_measurements(15.0, 50.0, 40.0, 30.0, divisor=5000)
        assert shipment.billable_weight_kg == 15.0

    def test_without_dimensions(self):
        shipment = _make_shipment()
        shipment.record_measurements(2.5, None, None, None, divisor=5000)
        assert shipment.dimensional_weight_kg is None
        assert shipment.billable_weight_kg == 2.5

    def test_assign_tracking_per_tier(self):
        shipment = _make_shipment()
        shipment.assign_tracking(Tier.INTERNATIONAL, "DHL", "JD0001")
        assert shipment.international_carrier == "DHL"
        assert shipment.international_tracking_number == "JD0001"
