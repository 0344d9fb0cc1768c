"""FastAPI routes for the forwarding context.

Each route translates between Pydantic schemas (external contract) and
Protean commands. Domain errors are mapped to HTTP statuses by
``protean.integrations.fastapi.register_exception_handlers``.
"""

import json

from fastapi import APIRouter, Header, HTTPException
from protean.utils.globals import current_domain

from forwarding.api.schemas import (
    ChangePreferencesRequest,
    CountersResponse,
    CreateOrderRequest,
    DispatchRequest,
    EnqueueTaskRequest,
    ExceptionResponse,
    OrderIdResponse,
    OrderResponse,
    QualityCheckRequest,
    RespondRequest,
    RevisionResponse,
    ShipmentTrackingResponse,
    StatusResponse,
    SweepRequest,
    SweepResponse,
    TaskIdResponse,
    TaskResultRequest,
    TaskResultResponse,
    TrackingEventRequest,
    TrackingResultResponse,
    TrackingWebhookRequest,
    WarehouseArrivalRequest,
)
from forwarding.automation.runner import EnqueueTask, ReportTaskResult
from forwarding.carrier import get_carrier
from forwarding.item.arrival import RecordWarehouseArrival
from forwarding.item.quality import RecordQualityCheck
from forwarding.item_exception.response import RespondToException
from forwarding.order.counters import RecomputeOrderCounters
from forwarding.order.creation import CreateOrder
from forwarding.order.order import Order
from forwarding.order.preferences import ChangeOrderPreferences
from forwarding.projections.shipment_tracking import ShipmentTrackingView
from forwarding.revision.response import RespondToRevision
from forwarding.shared.actors import Capability, require_capability
from forwarding.shipment.handling import DispatchShipment
from forwarding.shipment.tracking import RecordTrackingEvent
from forwarding.sweeps import run_sweeps


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest) -> OrderIdResponse:
    """Create an order from a paid quote snapshot."""
    command = CreateOrder(
        customer_id=body.customer_id,
        quote_snapshot=body.quote_snapshot.model_dump_json() if body.quote_snapshot else None,
        payment_id=body.payment_id,
        payment_method=body.payment_method,
        amount_paid=body.amount_paid,
        primary_warehouse=body.primary_warehouse,
        consolidation_preference=body.consolidation_preference,
        max_consolidation_wait_days=body.max_consolidation_wait_days,
        payment_completed_at=body.payment_completed_at,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    return OrderResponse(
        order_id=str(order.id),
        quote_id=order.quote_id,
        customer_id=str(order.customer_id),
        status=order.status,
        payment_status=order.payment_status,
        primary_warehouse=order.primary_warehouse,
        consolidation_preference=order.consolidation_preference,
        max_consolidation_wait_days=order.max_consolidation_wait_days,
        currency=order.currency,
        original_quote_total=order.original_quote_total,
        current_order_total=order.current_order_total,
        variance_amount=order.variance_amount,
        total_paid=order.total_paid,
        total_refunded=order.total_refunded,
        counters=CountersResponse(**order.counters.to_dict()),
        first_shipment_date=order.first_shipment_date,
        last_delivery_date=order.last_delivery_date,
        version=order._version,
    )


@order_router.post("/{order_id}/recompute", response_model=CountersResponse)
async def recompute_counters(order_id: str) -> CountersResponse:
    """Recompute the item counters; safe to call at any time."""
    counters = current_domain.process(RecomputeOrderCounters(order_id=order_id), asynchronous=False)
    return CountersResponse(**counters)


@order_router.put("/{order_id}/preferences", response_model=StatusResponse)
async def change_preferences(order_id: str, body: ChangePreferencesRequest) -> StatusResponse:
    command = ChangeOrderPreferences(
        order_id=order_id,
        actor_id=body.actor_id,
        actor_role=body.actor_role,
        primary_warehouse=body.primary_warehouse,
        consolidation_preference=body.consolidation_preference,
        max_consolidation_wait_days=body.max_consolidation_wait_days,
        expected_version=body.expected_version,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="preferences_changed")


# ---------------------------------------------------------------------------
# Items (warehouse staff)
# ---------------------------------------------------------------------------
item_router = APIRouter(prefix="/items", tags=["items"])


@item_router.post("/{item_id}/warehouse-arrival", response_model=StatusResponse)
async def record_warehouse_arrival(item_id: str, body: WarehouseArrivalRequest) -> StatusResponse:
    command = RecordWarehouseArrival(
        item_id=item_id,
        warehouse=body.warehouse,
        arrived_at=body.arrived_at,
        expected_version=body.expected_version,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="quality_check_pending")


@item_router.post("/{item_id}/quality-check", response_model=StatusResponse)
async def record_quality_check(item_id: str, body: QualityCheckRequest) -> StatusResponse:
    command = RecordQualityCheck(
        item_id=item_id,
        passed=body.passed,
        inspector=body.inspector,
        notes=body.notes,
        photos=json.dumps(body.photos),
        actual_weight=body.actual_weight,
        expected_version=body.expected_version,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="quality_check_passed" if body.passed else "quality_check_failed")


# ---------------------------------------------------------------------------
# Automation
# ---------------------------------------------------------------------------
automation_router = APIRouter(prefix="/automation", tags=["automation"])


@automation_router.post("/tasks", status_code=201, response_model=TaskIdResponse)
async def enqueue_task(body: EnqueueTaskRequest) -> TaskIdResponse:
    """Queue an external action; it starts at once unless one is in flight."""
    command = EnqueueTask(item_id=body.item_id, task_type=body.task_type, config=json.dumps(body.config))
    task_id = current_domain.process(command, asynchronous=False)
    return TaskIdResponse(task_id=task_id)


@automation_router.post("/tasks/{task_id}/result", response_model=TaskResultResponse)
async def report_task_result(task_id: str, body: TaskResultRequest) -> TaskResultResponse:
    """Agent callback; repeated deliveries of one result are ignored."""
    command = ReportTaskResult(
        task_id=task_id,
        success=body.success,
        attempt=body.attempt,
        result_json=json.dumps(body.payload) if body.payload is not None else None,
        error_message=body.error_message,
        data_quality_score=body.data_quality_score,
        execution_time_seconds=body.execution_time_seconds,
    )
    result = current_domain.process(command, asynchronous=False)
    return TaskResultResponse(**result)


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------
shipment_router = APIRouter(prefix="/shipments", tags=["shipments"])


def _tracking_command(body: TrackingEventRequest, **target) -> RecordTrackingEvent:
    return RecordTrackingEvent(
        status=body.status,
        occurred_at=body.occurred_at,
        data_source=body.data_source,
        external_event_id=body.external_event_id,
        event_type=body.event_type,
        event_status=body.event_status,
        description=body.description,
        location=body.location,
        country_code=body.country_code,
        city=body.city,
        carrier=body.carrier,
        customer_visible=body.customer_visible,
        exception_reason=body.exception_reason,
        **target,
    )


def _verify_signature(body: TrackingEventRequest, signature: str) -> None:
    if not get_carrier().verify_webhook_signature(body.model_dump_json(), signature):
        raise HTTPException(status_code=401, detail="Invalid carrier webhook signature")


@shipment_router.post("/{shipment_id}/dispatch", response_model=StatusResponse)
async def dispatch_shipment(shipment_id: str, body: DispatchRequest) -> StatusResponse:
    """Hand the shipment to the international carrier."""
    command = DispatchShipment(
        shipment_id=shipment_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        dispatched_at=body.dispatched_at,
        expected_version=body.expected_version,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="dispatched_internationally")


@shipment_router.post("/tracking/webhook", response_model=TrackingResultResponse)
async def tracking_webhook(
    body: TrackingWebhookRequest,
    x_carrier_signature: str = Header(default=""),
) -> TrackingResultResponse:
    """Carrier callback addressed by tracking number."""
    _verify_signature(body, x_carrier_signature)
    command = _tracking_command(body, tracking_number=body.tracking_number)
    return TrackingResultResponse(**current_domain.process(command, asynchronous=False))


@shipment_router.post("/{shipment_id}/tracking", response_model=TrackingResultResponse)
async def record_tracking_event(
    shipment_id: str,
    body: TrackingEventRequest,
    x_carrier_signature: str = Header(default=""),
) -> TrackingResultResponse:
    _verify_signature(body, x_carrier_signature)
    command = _tracking_command(body, shipment_id=shipment_id)
    return TrackingResultResponse(**current_domain.process(command, asynchronous=False))


@shipment_router.get("/{shipment_id}/tracking", response_model=ShipmentTrackingResponse)
async def get_tracking(shipment_id: str) -> ShipmentTrackingResponse:
    view = current_domain.repository_for(ShipmentTrackingView).get(shipment_id)
    return ShipmentTrackingResponse(
        shipment_id=str(view.shipment_id),
        order_id=str(view.order_id),
        current_tier=view.current_tier,
        current_status=view.current_status,
        exception_status=view.exception_status,
        tracking_numbers=json.loads(view.tracking_numbers) if view.tracking_numbers else {},
        events=json.loads(view.events_json) if view.events_json else [],
        dispatched_at=view.dispatched_at,
        delivered_at=view.delivered_at,
    )


# ---------------------------------------------------------------------------
# Customer responses
# ---------------------------------------------------------------------------
revision_router = APIRouter(prefix="/revisions", tags=["revisions"])
exception_router = APIRouter(prefix="/exceptions", tags=["exceptions"])


@revision_router.post("/{revision_id}/respond", response_model=RevisionResponse)
async def respond_to_revision(revision_id: str, body: RespondRequest) -> RevisionResponse:
    command = RespondToRevision(
        revision_id=revision_id,
        actor_id=body.actor_id,
        decision=body.decision,
        note=body.note,
    )
    revision = current_domain.process(command, asynchronous=False)
    return RevisionResponse(
        revision_id=str(revision["id"]),
        item_id=str(revision["item_id"]),
        change_type=revision["change_type"],
        customer_approval_status=revision["customer_approval_status"],
        total_cost_impact=revision["total_cost_impact"],
        responded_by=revision.get("responded_by"),
        resolved_at=revision.get("resolved_at"),
    )


@exception_router.post("/{exception_id}/respond", response_model=ExceptionResponse)
async def respond_to_exception(exception_id: str, body: RespondRequest) -> ExceptionResponse:
    command = RespondToException(
        exception_id=exception_id,
        actor_id=body.actor_id,
        decision=body.decision,
        note=body.note,
        amount=body.amount,
    )
    exc = current_domain.process(command, asynchronous=False)
    return ExceptionResponse(
        exception_id=str(exc["id"]),
        item_id=str(exc["item_id"]),
        exception_type=exc["exception_type"],
        resolution_status=exc["resolution_status"],
        resolution_method=exc.get("resolution_method"),
        resolution_amount=exc.get("resolution_amount"),
        resolved_by=exc.get("resolved_by"),
    )


# ---------------------------------------------------------------------------
# Sweeps
# ---------------------------------------------------------------------------
sweep_router = APIRouter(prefix="/sweeps", tags=["sweeps"])


@sweep_router.post("/run", response_model=SweepResponse)
async def run(body: SweepRequest) -> SweepResponse:
    """Run the deadline sweeps now instead of waiting for the sweeper."""
    require_capability(body.actor_role, Capability.RUN_SWEEPS)
    return SweepResponse(results=run_sweeps(as_of=body.as_of, names=body.sweeps))


routers = [order_router, item_router, automation_router, shipment_router, revision_router, exception_router, sweep_router]
