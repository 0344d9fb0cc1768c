"""Commands and handler for warehouse-side shipment handling."""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from forwarding.carrier import get_carrier
from forwarding.domain import forwarding
from forwarding.shared.clock import as_utc
from forwarding.shared.errors import assert_expected_version
from forwarding.shipment.shipment import DataSource, Shipment, ShipmentStatus, Tier

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Shipment")
class RecordShipmentMeasurements:
    shipment_id = Identifier(required=True)
    actual_weight_kg = Float(required=True, min_value=0.0)
    length_cm = Float(min_value=0.0)
    width_cm = Float(min_value=0.0)
    height_cm = Float(min_value=0.0)


@forwarding.command(part_of="Shipment")
class AssignTrackingNumber:
    """Attach a carrier tracking number to one tier and subscribe to its updates."""

    shipment_id = Identifier(required=True)
    tier = String(required=True, max_length=20, choices=Tier)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=100)


@forwarding.command(part_of="Shipment")
class DispatchShipment:
    """Staff hand the shipment to the international carrier."""

    shipment_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=100)
    dispatched_at = DateTime()
    expected_version = Integer()


@forwarding.command(part_of="Shipment")
class CancelShipment:
    shipment_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


def _register(shipment: Shipment, tier: Tier, carrier: str, tracking_number: str) -> None:
    outcome = get_carrier().register_tracking(str(shipment.id), tier.value, carrier, tracking_number)
    if not outcome.get("registered"):
        raise ValidationError({"tracking_number": [f"Carrier registration failed: {outcome.get('error')}"]})


@forwarding.command_handler(part_of=Shipment)
class ShipmentHandlingHandler:
    @handle(RecordShipmentMeasurements)
    def record_measurements(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        shipment.record_measurements(
            command.actual_weight_kg,
            command.length_cm,
            command.width_cm,
            command.height_cm,
            divisor=current_domain.DIMENSIONAL_WEIGHT_DIVISOR,
        )
        repo.add(shipment)
        return {"billable_weight_kg": shipment.billable_weight_kg}

    @handle(AssignTrackingNumber)
    def assign_tracking(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        tier = Tier(command.tier)
        _register(shipment, tier, command.carrier, command.tracking_number)
        shipment.assign_tracking(tier, command.carrier, command.tracking_number)
        repo.add(shipment)

    @handle(DispatchShipment)
    def dispatch(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        assert_expected_version(shipment, command.expected_version)
        if Tier(shipment.current_tier) != Tier.SELLER:
            raise ValidationError({"current_status": [f"Shipment already left the warehouse ({shipment.current_status})"]})
        dispatched_at = command.dispatched_at or datetime.now(UTC)
        if shipment.latest_event_at is not None and as_utc(dispatched_at) < as_utc(shipment.latest_event_at):
            raise ValidationError({"dispatched_at": ["Dispatch time is earlier than the latest tracking event"]})
        _register(shipment, Tier.INTERNATIONAL, command.carrier, command.tracking_number)
        shipment.assign_tracking(Tier.INTERNATIONAL, command.carrier, command.tracking_number)
        shipment.record_tracking_event(
            ShipmentStatus.DISPATCHED_INTERNATIONALLY,
            occurred_at=dispatched_at,
            data_source=DataSource.MANUAL,
            event_type="departed",
            carrier=command.carrier,
            description=f"Dispatched from {shipment.origin_warehouse}",
        )
        repo.add(shipment)
        logger.info(
            "Shipment dispatched",
            shipment_id=str(shipment.id),
            order_id=str(shipment.order_id),
            carrier=command.carrier,
            items=len(shipment.item_ids),
        )

    @handle(CancelShipment)
    def cancel(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        shipment.cancel(command.reason)
        repo.add(shipment)
