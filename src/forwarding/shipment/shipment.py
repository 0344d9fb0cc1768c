"""Shipment aggregate (CQRS) — items travelling together, tracked in three tiers.

A shipment moves through three independent carrier legs, always in order:
seller (seller → warehouse), international (warehouse → destination border)
and local (border → customer). Carrier updates arrive as TrackingEvents in
any order. Every event is appended to the log; the current status and tier
are a projection of the latest applicable event and are updated in the same
write as the append.

An event is applied to the projection only when its tier is not behind the
current tier and it is not older than the latest applied event. Anything
else is logged without touching the status. Events are deduplicated by
(external event id, timestamp).

Shipments become immutable once delivered, returned to sender or cancelled.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from forwarding.domain import forwarding
from forwarding.shared.clock import as_utc
from forwarding.shipment.events import (
    ShipmentCancelled,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentDispatched,
    ShipmentExceptionCleared,
    ShipmentExceptionFlagged,
    ShipmentMeasured,
    TrackingEventRecorded,
    TrackingNumberAssigned,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ShipmentStatus(Enum):
    SELLER_PREPARING = "seller_preparing"
    SELLER_SHIPPED = "seller_shipped"
    IN_TRANSIT_TO_WAREHOUSE = "in_transit_to_warehouse"
    ARRIVED_AT_WAREHOUSE = "arrived_at_warehouse"
    QUALITY_CHECK_PENDING = "quality_check_pending"
    QUALITY_CHECK_PASSED = "quality_check_passed"
    QUALITY_CHECK_FAILED = "quality_check_failed"
    CONSOLIDATION_PENDING = "consolidation_pending"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    DISPATCHED_INTERNATIONALLY = "dispatched_internationally"
    IN_TRANSIT_INTERNATIONAL = "in_transit_international"
    AT_CUSTOMS = "at_customs"
    CUSTOMS_CLEARED = "customs_cleared"
    CUSTOMS_HOLD = "customs_hold"
    LOCAL_FACILITY = "local_facility"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERY_ATTEMPTED = "delivery_attempted"
    DELIVERED = "delivered"
    RETURNED_TO_SENDER = "returned_to_sender"
    EXCEPTION = "exception"
    CANCELLED = "cancelled"


class Tier(Enum):
    SELLER = "seller"
    INTERNATIONAL = "international"
    LOCAL = "local"


class ShipmentKind(Enum):
    DIRECT = "direct"
    CONSOLIDATED = "consolidated"
    PARTIAL = "partial"
    REPLACEMENT = "replacement"


class DataSource(Enum):
    MANUAL = "manual"
    WEBHOOK = "webhook"
    API_SCRAPE = "api_scrape"
    EMAIL_PARSE = "email_parse"
    AUTOMATION = "automation"


class TrackingEventType(Enum):
    ORDER_PLACED = "order_placed"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    DEPARTED = "departed"
    CUSTOMS = "customs"
    CLEARED = "cleared"
    DELIVERED = "delivered"
    ATTEMPTED = "attempted"
    EXCEPTION = "exception"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class EventSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    PENDING = "pending"


class ExceptionStatus(Enum):
    CUSTOMS_HOLD = "customs_hold"
    DAMAGED_IN_TRANSIT = "damaged_in_transit"
    DELIVERY_FAILED = "delivery_failed"
    ADDRESS_ISSUE = "address_issue"
    CUSTOMER_NOT_AVAILABLE = "customer_not_available"


class ReceivedCondition(Enum):
    GOOD = "good"
    DAMAGED = "damaged"
    MISSING = "missing"
    DEFECTIVE = "defective"
    WRONG_ITEM = "wrong_item"


class TrackingOutcome(Enum):
    APPLIED = "applied"
    LOGGED = "logged"  # appended to the log, status untouched
    DUPLICATE = "duplicate"


_S = ShipmentStatus
_STATUS_TIER = {
    **dict.fromkeys(
        [
            _S.SELLER_PREPARING,
            _S.SELLER_SHIPPED,
            _S.IN_TRANSIT_TO_WAREHOUSE,
            _S.ARRIVED_AT_WAREHOUSE,
            _S.QUALITY_CHECK_PENDING,
            _S.QUALITY_CHECK_PASSED,
            _S.QUALITY_CHECK_FAILED,
            _S.CONSOLIDATION_PENDING,
            _S.READY_FOR_DISPATCH,
        ],
        Tier.SELLER,
    ),
    **dict.fromkeys(
        [
            _S.DISPATCHED_INTERNATIONALLY,
            _S.IN_TRANSIT_INTERNATIONAL,
            _S.AT_CUSTOMS,
            _S.CUSTOMS_CLEARED,
            _S.CUSTOMS_HOLD,
        ],
        Tier.INTERNATIONAL,
    ),
    **dict.fromkeys(
        [
            _S.LOCAL_FACILITY,
            _S.OUT_FOR_DELIVERY,
            _S.DELIVERY_ATTEMPTED,
            _S.DELIVERED,
            _S.RETURNED_TO_SENDER,
        ],
        Tier.LOCAL,
    ),
}

_TIER_RANK = {Tier.SELLER: 0, Tier.INTERNATIONAL: 1, Tier.LOCAL: 2}

TERMINAL_STATUSES = {_S.DELIVERED, _S.RETURNED_TO_SENDER, _S.CANCELLED}

# Statuses that put the shipment into an exception state, with the default reason
_EXCEPTION_REASONS = {
    _S.CUSTOMS_HOLD: ExceptionStatus.CUSTOMS_HOLD,
    _S.DELIVERY_ATTEMPTED: ExceptionStatus.CUSTOMER_NOT_AVAILABLE,
    _S.EXCEPTION: ExceptionStatus.DELIVERY_FAILED,
}


def tier_of(status: ShipmentStatus) -> Tier | None:
    """Tier a status belongs to; ``exception`` and ``cancelled`` have none."""
    return _STATUS_TIER.get(status)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@forwarding.entity(part_of="Shipment")
class ShipmentItem:
    """An OrderItem travelling in this shipment, with its customs allocation."""

    item_id = Identifier(required=True)
    quantity_in_shipment = Integer(default=1, min_value=1)
    received_condition = String(max_length=20, choices=ReceivedCondition, default=ReceivedCondition.GOOD.value)
    item_weight_in_shipment = Float(min_value=0.0)
    item_value_in_shipment = Float(min_value=0.0)
    customs_declared_value = Float(min_value=0.0)


@forwarding.entity(part_of="Shipment")
class TrackingEvent:
    """One carrier update. Never updated or removed once appended."""

    tier = String(required=True, max_length=20, choices=Tier)
    status = String(required=True, max_length=30, choices=ShipmentStatus)
    event_type = String(max_length=20, choices=TrackingEventType)
    event_status = String(max_length=10, choices=EventSeverity, default=EventSeverity.INFO.value)
    description = String(max_length=500)
    location = String(max_length=200)
    country_code = String(max_length=2)
    city = String(max_length=100)
    carrier = String(max_length=100)
    external_event_id = String(max_length=100)
    data_source = String(required=True, max_length=20, choices=DataSource)
    customer_visible = Boolean(default=True)
    applied = Boolean(default=False)
    occurred_at = DateTime(required=True)
    received_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@forwarding.aggregate
class Shipment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    origin_warehouse = String(required=True, max_length=30)
    destination_country = String(max_length=2)
    shipment_kind = String(max_length=20, choices=ShipmentKind, default=ShipmentKind.DIRECT.value)
    service_type = String(max_length=50)

    current_tier = String(max_length=20, choices=Tier, default=Tier.SELLER.value)
    current_status = String(max_length=30, choices=ShipmentStatus, default=_S.READY_FOR_DISPATCH.value)
    exception_status = String(max_length=30, choices=ExceptionStatus)
    latest_event_at = DateTime()

    # Per-tier carrier tracking
    seller_carrier = String(max_length=100)
    seller_tracking_number = String(max_length=100)
    international_carrier = String(max_length=100)
    international_tracking_number = String(max_length=100)
    local_carrier = String(max_length=100)
    local_tracking_number = String(max_length=100)

    # Weight and dimensions
    estimated_weight_kg = Float(min_value=0.0)
    actual_weight_kg = Float(min_value=0.0)
    dimensional_weight_kg = Float(min_value=0.0)
    billable_weight_kg = Float(min_value=0.0)
    length_cm = Float(min_value=0.0)
    width_cm = Float(min_value=0.0)
    height_cm = Float(min_value=0.0)
    declared_value = Float(default=0.0)

    # Stage dates
    seller_shipped_date = DateTime()
    warehouse_received_date = DateTime()
    international_dispatch_date = DateTime()
    customs_cleared_date = DateTime()
    delivered_date = DateTime()

    items = HasMany(ShipmentItem)
    tracking_events = HasMany(TrackingEvent)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id: str,
        customer_id: str,
        origin_warehouse: str,
        order_items: list,
        shipment_kind: ShipmentKind,
        destination_country: str | None = None,
        service_type: str | None = None,
    ):
        """Bundle quality-passed items held at one warehouse."""
        if not order_items:
            raise ValidationError({"items": ["A shipment needs at least one item"]})
        item_ids = [str(item.id) for item in order_items]
        if len(set(item_ids)) != len(item_ids):
            raise ValidationError({"items": ["An item can appear only once in a shipment"]})

        now = datetime.now(UTC)
        shipment = cls(
            order_id=order_id,
            customer_id=customer_id,
            origin_warehouse=origin_warehouse,
            destination_country=destination_country,
            shipment_kind=shipment_kind.value,
            service_type=service_type,
            current_tier=Tier.SELLER.value,
            current_status=_S.READY_FOR_DISPATCH.value,
            latest_event_at=now,
            created_at=now,
            updated_at=now,
        )
        for item in order_items:
            value = round((item.current_price or 0.0) * (item.quantity or 1), 2)
            shipment.add_items(
                ShipmentItem(
                    item_id=str(item.id),
                    quantity_in_shipment=item.quantity or 1,
                    item_weight_in_shipment=item.actual_weight or item.current_weight,
                    item_value_in_shipment=value,
                    customs_declared_value=value,
                )
            )
        shipment.estimated_weight_kg = round(sum(i.item_weight_in_shipment or 0.0 for i in shipment.items), 3)
        shipment.declared_value = round(sum(i.customs_declared_value or 0.0 for i in shipment.items), 2)

        shipment.raise_(
            ShipmentCreated(
                shipment_id=str(shipment.id),
                order_id=order_id,
                customer_id=customer_id,
                origin_warehouse=origin_warehouse,
                shipment_kind=shipment_kind.value,
                item_ids=json.dumps(item_ids),
                estimated_weight_kg=shipment.estimated_weight_kg,
                created_at=now,
            )
        )
        return shipment

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def item_ids(self) -> list[str]:
        return [str(i.item_id) for i in (self.items or [])]

    @property
    def is_terminal(self) -> bool:
        return ShipmentStatus(self.current_status) in TERMINAL_STATUSES

    @property
    def timeline(self) -> list[TrackingEvent]:
        """The event log ordered by carrier timestamp, not arrival order."""
        return sorted(self.tracking_events or [], key=lambda e: as_utc(e.occurred_at))

    def _assert_mutable(self) -> None:
        if self.is_terminal:
            raise ValidationError({"current_status": [f"Shipment is {self.current_status} and can no longer change"]})

    # -------------------------------------------------------------------
    # Warehouse
    # -------------------------------------------------------------------
    def record_measurements(
        self,
        actual_weight_kg: float,
        length_cm: float | None,
        width_cm: float | None,
        height_cm: float | None,
        divisor: int,
    ) -> None:
        """Billable weight is the larger of actual and dimensional weight."""
        self._assert_mutable()
        now = datetime.now(UTC)
        self.actual_weight_kg = actual_weight_kg
        self.length_cm, self.width_cm, self.height_cm = length_cm, width_cm, height_cm
        if length_cm and width_cm and height_cm:
            self.dimensional_weight_kg = round(length_cm * width_cm * height_cm / divisor, 3)
        else:
            self.dimensional_weight_kg = None
        self.billable_weight_kg = max(actual_weight_kg, self.dimensional_weight_kg or 0.0)
        self.updated_at = now
        self.raise_(
            ShipmentMeasured(
                shipment_id=str(self.id),
                actual_weight_kg=actual_weight_kg,
                dimensional_weight_kg=self.dimensional_weight_kg,
                billable_weight_kg=self.billable_weight_kg,
                measured_at=now,
            )
        )

    def assign_tracking(self, tier: Tier, carrier: str, tracking_number: str) -> None:
        self._assert_mutable()
        now = datetime.now(UTC)
        setattr(self, f"{tier.value}_carrier", carrier)
        setattr(self, f"{tier.value}_tracking_number", tracking_number)
        self.updated_at = now
        self.raise_(
            TrackingNumberAssigned(
                shipment_id=str(self.id),
                tier=tier.value,
                carrier=carrier,
                tracking_number=tracking_number,
                assigned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def _is_duplicate(self, external_event_id: str | None, status: ShipmentStatus, occurred_at: datetime) -> bool:
        key = external_event_id or status.value
        for event in self.tracking_events or []:
            existing_key = event.external_event_id or event.status
            if existing_key == key and as_utc(event.occurred_at) == as_utc(occurred_at):
                return True
        return False

    def _is_applicable(self, tier: Tier | None, occurred_at: datetime) -> bool:
        if self.latest_event_at is not None and as_utc(occurred_at) < as_utc(self.latest_event_at):
            return False
        if tier is None:
            return True
        return _TIER_RANK[tier] >= _TIER_RANK[Tier(self.current_tier)]

    def record_tracking_event(
        self,
        status: ShipmentStatus,
        occurred_at: datetime,
        data_source: DataSource,
        external_event_id: str | None = None,
        event_type: str | None = None,
        event_status: str | None = None,
        description: str | None = None,
        location: str | None = None,
        country_code: str | None = None,
        city: str | None = None,
        carrier: str | None = None,
        customer_visible: bool = True,
        exception_reason: ExceptionStatus | None = None,
    ) -> TrackingOutcome:
        """Append a carrier update and project it onto the status when applicable."""
        if status == _S.CANCELLED:
            raise ValidationError({"status": ["Cancellation is not a carrier tracking update"]})
        if self._is_duplicate(external_event_id, status, occurred_at):
            return TrackingOutcome.DUPLICATE
        self._assert_mutable()

        now = datetime.now(UTC)
        tier = tier_of(status)
        applied = self._is_applicable(tier, occurred_at)
        event_tier = tier or Tier(self.current_tier)
        self.add_tracking_events(
            TrackingEvent(
                tier=event_tier.value,
                status=status.value,
                event_type=event_type,
                event_status=event_status or EventSeverity.INFO.value,
                description=description,
                location=location,
                country_code=country_code,
                city=city,
                carrier=carrier,
                external_event_id=external_event_id,
                data_source=data_source.value,
                customer_visible=customer_visible,
                applied=applied,
                occurred_at=occurred_at,
                received_at=now,
            )
        )
        if applied:
            self._apply(status, tier, occurred_at, description, exception_reason)
        self.updated_at = now

        self.raise_(
            TrackingEventRecorded(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                tier=event_tier.value,
                status=status.value,
                event_type=event_type,
                description=description,
                location=location,
                data_source=data_source.value,
                external_event_id=external_event_id,
                customer_visible=customer_visible,
                applied=applied,
                current_status=self.current_status,
                current_tier=self.current_tier,
                occurred_at=occurred_at,
            )
        )
        return TrackingOutcome.APPLIED if applied else TrackingOutcome.LOGGED

    def _apply(
        self,
        status: ShipmentStatus,
        tier: Tier | None,
        occurred_at: datetime,
        description: str | None,
        exception_reason: ExceptionStatus | None,
    ) -> None:
        self.current_status = status.value
        if tier is not None:
            self.current_tier = tier.value
        self.latest_event_at = occurred_at

        if status == _S.SELLER_SHIPPED and self.seller_shipped_date is None:
            self.seller_shipped_date = occurred_at
        elif status == _S.ARRIVED_AT_WAREHOUSE and self.warehouse_received_date is None:
            self.warehouse_received_date = occurred_at
        elif status == _S.CUSTOMS_CLEARED:
            self.customs_cleared_date = occurred_at

        if tier is not None and tier != Tier.SELLER and self.international_dispatch_date is None:
            self.international_dispatch_date = occurred_at
            self.raise_(
                ShipmentDispatched(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    customer_id=str(self.customer_id),
                    item_ids=json.dumps(self.item_ids),
                    international_carrier=self.international_carrier,
                    international_tracking_number=self.international_tracking_number,
                    dispatched_at=occurred_at,
                )
            )

        if status in _EXCEPTION_REASONS:
            reason = exception_reason or _EXCEPTION_REASONS[status]
            self.exception_status = reason.value
            self.raise_(
                ShipmentExceptionFlagged(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    item_ids=json.dumps(self.item_ids),
                    exception_status=reason.value,
                    description=description,
                    flagged_at=occurred_at,
                )
            )
        elif self.exception_status is not None:
            self.raise_(
                ShipmentExceptionCleared(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    previous_exception_status=self.exception_status,
                    status=status.value,
                    cleared_at=occurred_at,
                )
            )
            self.exception_status = None

        if status == _S.DELIVERED:
            self.delivered_date = occurred_at
            self.raise_(
                ShipmentDelivered(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    customer_id=str(self.customer_id),
                    item_ids=json.dumps(self.item_ids),
                    delivered_at=occurred_at,
                )
            )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason: str) -> None:
        """Only a shipment that has not left the warehouse can be cancelled."""
        self._assert_mutable()
        if Tier(self.current_tier) != Tier.SELLER:
            raise ValidationError({"current_status": ["Cannot cancel a shipment after international dispatch"]})
        now = datetime.now(UTC)
        self.current_status = _S.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(
            ShipmentCancelled(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                item_ids=json.dumps(self.item_ids),
                reason=reason,
                cancelled_at=now,
            )
        )
