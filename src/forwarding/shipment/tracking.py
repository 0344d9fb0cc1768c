"""Tracking ingestion — carrier webhooks, scrapes and manual entries.

Transport does not matter here: every update arrives as a
``RecordTrackingEvent`` carrying tier-identifying status, an external id and
the carrier's timestamp. Updates are matched to a shipment by id or by any
of its tracking numbers.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.shipment.shipment import (
    DataSource,
    EventSeverity,
    ExceptionStatus,
    Shipment,
    ShipmentStatus,
    TrackingEventType,
    TrackingOutcome,
)

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Shipment")
class RecordTrackingEvent:
    shipment_id = Identifier()
    tracking_number = String(max_length=100)
    status = String(required=True, max_length=30, choices=ShipmentStatus)
    occurred_at = DateTime(required=True)
    data_source = String(max_length=20, choices=DataSource, default=DataSource.WEBHOOK.value)
    external_event_id = String(max_length=100)
    event_type = String(max_length=20, choices=TrackingEventType)
    event_status = String(max_length=10, choices=EventSeverity)
    description = String(max_length=500)
    location = String(max_length=200)
    country_code = String(max_length=2)
    city = String(max_length=100)
    carrier = String(max_length=100)
    customer_visible = Boolean(default=True)
    exception_reason = String(max_length=30, choices=ExceptionStatus)


def _locate(command) -> Shipment:
    repo = current_domain.repository_for(Shipment)
    if command.shipment_id:
        return repo.get(command.shipment_id)
    if not command.tracking_number:
        raise ValidationError({"tracking_number": ["A shipment id or tracking number is required"]})

    shipment = repo.by_tracking_number(command.tracking_number)
    if shipment is None:
        logger.warning("Tracking event for unknown tracking number", tracking_number=command.tracking_number)
        raise ObjectNotFoundError(f"No shipment with tracking number {command.tracking_number}")
    return shipment


@forwarding.command_handler(part_of=Shipment)
class TrackingHandler:
    @handle(RecordTrackingEvent)
    def record_tracking_event(self, command):
        shipment = _locate(command)
        outcome = shipment.record_tracking_event(
            ShipmentStatus(command.status),
            occurred_at=command.occurred_at,
            data_source=DataSource(command.data_source),
            external_event_id=command.external_event_id,
            event_type=command.event_type,
            event_status=command.event_status,
            description=command.description,
            location=command.location,
            country_code=command.country_code,
            city=command.city,
            carrier=command.carrier,
            customer_visible=command.customer_visible,
            exception_reason=ExceptionStatus(command.exception_reason) if command.exception_reason else None,
        )

        if outcome == TrackingOutcome.DUPLICATE:
            logger.info(
                "Duplicate tracking event ignored",
                shipment_id=str(shipment.id),
                external_event_id=command.external_event_id,
            )
        else:
            current_domain.repository_for(Shipment).add(shipment)
            if outcome == TrackingOutcome.LOGGED:
                logger.warning(
                    "Out-of-order tracking event logged without status change",
                    shipment_id=str(shipment.id),
                    event_status=command.status,
                    occurred_at=command.occurred_at.isoformat(),
                    current_status=shipment.current_status,
                    current_tier=shipment.current_tier,
                )

        return {
            "shipment_id": str(shipment.id),
            "outcome": outcome.value,
            "current_status": shipment.current_status,
            "current_tier": shipment.current_tier,
        }
