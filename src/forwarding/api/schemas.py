"""Pydantic API schemas for the forwarding context.

These are the external API contracts, separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class QuoteLineRequest(BaseModel):
    quote_line_id: str | None = None
    product_name: str
    product_url: str | None = None
    seller_platform: str = "other"
    quantity: int = Field(default=1, ge=1)
    origin_country: str | None = None
    destination_country: str | None = None
    price: float = Field(ge=0)
    weight: float = Field(ge=0)
    warehouse: str | None = None


class QuoteSnapshotRequest(BaseModel):
    quote_id: str
    lines: list[QuoteLineRequest]
    total: float | None = None
    currency: str = "USD"
    captured_at: datetime | None = None


class CreateOrderRequest(BaseModel):
    customer_id: str
    quote_snapshot: QuoteSnapshotRequest | None = None
    payment_id: str | None = None
    payment_method: str | None = None
    amount_paid: float | None = None
    primary_warehouse: str | None = None
    consolidation_preference: str | None = None
    max_consolidation_wait_days: int | None = None
    payment_completed_at: datetime | None = None


class ChangePreferencesRequest(BaseModel):
    actor_id: str
    actor_role: str
    primary_warehouse: str | None = None
    consolidation_preference: str | None = None
    max_consolidation_wait_days: int | None = None
    expected_version: int | None = None


class WarehouseArrivalRequest(BaseModel):
    warehouse: str
    arrived_at: datetime | None = None
    expected_version: int | None = None


class QualityCheckRequest(BaseModel):
    passed: bool
    inspector: str
    notes: str | None = None
    photos: list[str] = []
    actual_weight: float | None = None
    expected_version: int | None = None


class EnqueueTaskRequest(BaseModel):
    item_id: str
    task_type: str
    config: dict = {}


class TaskResultRequest(BaseModel):
    success: bool
    attempt: int | None = None
    payload: dict | None = None
    error_message: str | None = None
    data_quality_score: float | None = None
    execution_time_seconds: float | None = None


class TrackingEventRequest(BaseModel):
    status: str
    occurred_at: datetime
    data_source: str = "webhook"
    external_event_id: str | None = None
    event_type: str | None = None
    event_status: str | None = None
    description: str | None = None
    location: str | None = None
    country_code: str | None = None
    city: str | None = None
    carrier: str | None = None
    customer_visible: bool = True
    exception_reason: str | None = None


class TrackingWebhookRequest(TrackingEventRequest):
    tracking_number: str


class DispatchRequest(BaseModel):
    carrier: str
    tracking_number: str
    dispatched_at: datetime | None = None
    expected_version: int | None = None


class RespondRequest(BaseModel):
    actor_id: str
    decision: str
    note: str | None = None
    amount: float | None = None  # partial_refund_keep only


class SweepRequest(BaseModel):
    actor_role: str
    as_of: datetime | None = None
    sweeps: list[str] | None = None  # Default: every sweep


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class TaskIdResponse(BaseModel):
    task_id: str


class StatusResponse(BaseModel):
    status: str


class CountersResponse(BaseModel):
    total_items: int
    active_items: int
    cancelled_items: int
    refunded_items: int
    revision_pending_items: int
    shipped_items: int
    delivered_items: int


class OrderResponse(BaseModel):
    order_id: str
    quote_id: str
    customer_id: str
    status: str
    payment_status: str | None = None
    primary_warehouse: str | None = None
    consolidation_preference: str
    max_consolidation_wait_days: int
    currency: str
    original_quote_total: float
    current_order_total: float
    variance_amount: float
    total_paid: float
    total_refunded: float
    counters: CountersResponse
    first_shipment_date: datetime | None = None
    last_delivery_date: datetime | None = None
    version: int


class TaskResultResponse(BaseModel):
    task_id: str
    status: str
    applied: bool


class TrackingResultResponse(BaseModel):
    shipment_id: str
    outcome: str
    current_status: str
    current_tier: str


class RevisionResponse(BaseModel):
    revision_id: str
    item_id: str
    change_type: str
    customer_approval_status: str
    total_cost_impact: float
    responded_by: str | None = None
    resolved_at: str | None = None


class ExceptionResponse(BaseModel):
    exception_id: str
    item_id: str
    exception_type: str
    resolution_status: str
    resolution_method: str | None = None
    resolution_amount: float | None = None
    resolved_by: str | None = None


class SweepResponse(BaseModel):
    results: dict[str, int]


class ShipmentTrackingResponse(BaseModel):
    shipment_id: str
    order_id: str
    current_tier: str
    current_status: str
    exception_status: str | None = None
    tracking_numbers: dict = {}
    events: list[dict] = []
    dispatched_at: datetime | None = None
    delivered_at: datetime | None = None
