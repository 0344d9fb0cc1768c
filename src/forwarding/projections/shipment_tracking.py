"""Shipment tracking — customer-facing tracking page view.

The timeline is kept sorted by the carrier's event time, not by arrival, and
only carries customer-visible events.
"""

import json

from protean.core.projector import on
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.shipment.events import (
    ShipmentCancelled,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentDispatched,
    ShipmentExceptionFlagged,
    TrackingEventRecorded,
    TrackingNumberAssigned,
)
from forwarding.shipment.shipment import Shipment

_FLAGGING_STATUSES = {"exception", "customs_hold", "delivery_attempted"}


@forwarding.projection
class ShipmentTrackingView:
    shipment_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    shipment_kind = String()
    origin_warehouse = String()
    current_tier = String(required=True)
    current_status = String(required=True)
    exception_status = String()
    tracking_numbers = Text()  # JSON {tier: {carrier, tracking_number}}
    events_json = Text()  # JSON list of visible tracking events
    dispatched_at = DateTime()
    delivered_at = DateTime()
    updated_at = DateTime()


def _events(view) -> list[dict]:
    return json.loads(view.events_json) if view.events_json else []


@forwarding.projector(projector_for=ShipmentTrackingView, aggregates=[Shipment])
class ShipmentTrackingProjector:
    @on(ShipmentCreated)
    def on_shipment_created(self, event):
        current_domain.repository_for(ShipmentTrackingView).add(
            ShipmentTrackingView(
                shipment_id=event.shipment_id,
                order_id=event.order_id,
                shipment_kind=event.shipment_kind,
                origin_warehouse=event.origin_warehouse,
                current_tier="seller",
                current_status="ready_for_dispatch",
                tracking_numbers=json.dumps({}),
                events_json=json.dumps([]),
                updated_at=event.created_at,
            )
        )

    @on(TrackingNumberAssigned)
    def on_tracking_number_assigned(self, event):
        repo = current_domain.repository_for(ShipmentTrackingView)
        view = repo.get(event.shipment_id)
        numbers = json.loads(view.tracking_numbers) if view.tracking_numbers else {}
        numbers[event.tier] = {"carrier": event.carrier, "tracking_number": event.tracking_number}
        view.tracking_numbers = json.dumps(numbers)
        repo.add(view)

    @on(TrackingEventRecorded)
    def on_tracking_event_recorded(self, event):
        repo = current_domain.repository_for(ShipmentTrackingView)
        view = repo.get(event.shipment_id)
        view.current_status = event.current_status
        view.current_tier = event.current_tier
        if event.applied and event.status not in _FLAGGING_STATUSES:
            view.exception_status = None
        if event.customer_visible:
            timeline = _events(view)
            timeline.append(
                {
                    "tier": event.tier,
                    "status": event.status,
                    "location": event.location,
                    "description": event.description,
                    "occurred_at": event.occurred_at.isoformat(),
                }
            )
            timeline.sort(key=lambda e: e["occurred_at"])
            view.events_json = json.dumps(timeline)
        view.updated_at = event.occurred_at
        repo.add(view)

    @on(ShipmentDispatched)
    def on_shipment_dispatched(self, event):
        repo = current_domain.repository_for(ShipmentTrackingView)
        view = repo.get(event.shipment_id)
        view.dispatched_at = event.dispatched_at
        repo.add(view)

    @on(ShipmentExceptionFlagged)
    def on_shipment_exception_flagged(self, event):
        repo = current_domain.repository_for(ShipmentTrackingView)
        view = repo.get(event.shipment_id)
        view.exception_status = event.exception_status
        repo.add(view)

    @on(ShipmentDelivered)
    def on_shipment_delivered(self, event):
        repo = current_domain.repository_for(ShipmentTrackingView)
        view = repo.get(event.shipment_id)
        view.delivered_at = event.delivered_at
        view.exception_status = None
        repo.add(view)

    @on(ShipmentCancelled)
    def on_shipment_cancelled(self, event):
        repo = current_domain.repository_for(ShipmentTrackingView)
        view = repo.get(event.shipment_id)
        view.current_status = "cancelled"
        view.updated_at = event.cancelled_at
        repo.add(view)
