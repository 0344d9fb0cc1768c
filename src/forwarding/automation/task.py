"""AutomationTask aggregate (CQRS) — one external action against one item.

Tasks are executed by automation agents (seller-site order placement,
tracking-page scrapes, stock and status checks). The task owns retry and
escalation: transient failures are retried after a configurable delay up to
``max_retries``; after that the task waits for a human.

State Machine:
    queued → running → completed
    running → retry → running
    running → manual_required → {completed, failed}

Configs and results are stored as JSON but always pass through the typed
value objects below, selected by task type.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.reflection import declared_fields

from forwarding.automation.events import (
    TaskAbandoned,
    TaskEnqueued,
    TaskEscalated,
    TaskRetryScheduled,
    TaskStarted,
    TaskSucceeded,
)
from forwarding.domain import forwarding
from forwarding.shared.clock import as_utc


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TaskType(Enum):
    ORDER_PLACEMENT = "order_placement"
    TRACKING_SCRAPE = "tracking_scrape"
    STATUS_CHECK = "status_check"
    INVENTORY_CHECK = "inventory_check"


class TaskStatus(Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRY = "retry"
    MANUAL_REQUIRED = "manual_required"


_VALID_TRANSITIONS = {
    TaskStatus.QUEUED: {TaskStatus.RUNNING},
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.RETRY, TaskStatus.MANUAL_REQUIRED},
    TaskStatus.RETRY: {TaskStatus.RUNNING},
    TaskStatus.MANUAL_REQUIRED: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),  # terminal
    TaskStatus.FAILED: set(),  # terminal
}

# A task in one of these states occupies its (item, task type) slot
IN_FLIGHT_STATUSES = {TaskStatus.RUNNING, TaskStatus.RETRY}


# ---------------------------------------------------------------------------
# Value Objects: typed configs and results
# ---------------------------------------------------------------------------
@forwarding.value_object(part_of="AutomationTask")
class PlacementConfig:
    """What to buy: used by order placement and inventory checks."""

    seller_platform = String(required=True, max_length=20)
    product_url = String(max_length=1000)
    quantity = Integer(default=1, min_value=1)
    max_price = Float(min_value=0.0)


@forwarding.value_object(part_of="AutomationTask")
class TrackingConfig:
    """Where to look: used by tracking scrapes and seller status checks."""

    seller_platform = String(required=True, max_length=20)
    seller_order_id = String(max_length=100)
    product_url = String(max_length=1000)
    tracking_id = String(max_length=100)


@forwarding.value_object(part_of="AutomationTask")
class PlacementResult:
    seller_order_id = String(required=True, max_length=100)
    seller_order_date = DateTime()
    tracking_id = String(max_length=100)


@forwarding.value_object(part_of="AutomationTask")
class ScrapeResult:
    """Current seller-side facts about a placed order."""

    price = Float(min_value=0.0)
    weight = Float(min_value=0.0)
    tracking_id = String(max_length=100)
    raw = Text()  # opaque, agent-defined payload kept for audit


@forwarding.value_object(part_of="AutomationTask")
class StatusCheckResult:
    seller_status = String(required=True, max_length=50)
    tracking_id = String(max_length=100)


@forwarding.value_object(part_of="AutomationTask")
class InventoryResult:
    in_stock = Boolean(required=True)
    available_quantity = Integer(min_value=0)


_CONFIG_TYPES = {
    TaskType.ORDER_PLACEMENT: PlacementConfig,
    TaskType.INVENTORY_CHECK: PlacementConfig,
    TaskType.TRACKING_SCRAPE: TrackingConfig,
    TaskType.STATUS_CHECK: TrackingConfig,
}

_RESULT_TYPES = {
    TaskType.ORDER_PLACEMENT: PlacementResult,
    TaskType.TRACKING_SCRAPE: ScrapeResult,
    TaskType.STATUS_CHECK: StatusCheckResult,
    TaskType.INVENTORY_CHECK: InventoryResult,
}


def _typed(vo_cls, payload: dict, opaque_field: str | None = None):
    known = set(declared_fields(vo_cls))
    values = {key: value for key, value in payload.items() if key in known}
    extra = {key: value for key, value in payload.items() if key not in known}
    if opaque_field and extra and opaque_field not in values:
        values[opaque_field] = json.dumps(extra, default=str)
    return vo_cls(**values)


def parse_config(task_type: TaskType, payload: dict):
    """Validate a task config against the shape its task type expects."""
    return _typed(_CONFIG_TYPES[task_type], payload)


def parse_result(task_type: TaskType, payload: dict):
    """Validate an agent result; unknown scrape fields are kept as opaque data."""
    opaque = "raw" if task_type == TaskType.TRACKING_SCRAPE else None
    return _typed(_RESULT_TYPES[task_type], payload, opaque_field=opaque)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@forwarding.aggregate
class AutomationTask:
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    task_type = String(required=True, max_length=30, choices=TaskType)
    status = String(
        max_length=20,
        choices=TaskStatus,
        default=TaskStatus.QUEUED.value,
    )
    config = Text()  # JSON, validated by the typed config for task_type
    retry_count = Integer(default=0)
    max_retries = Integer(default=3, min_value=0)
    retry_delay_minutes = Integer(default=30, min_value=0)
    next_retry_at = DateTime()
    success = Boolean()
    result_payload = Text()  # JSON, validated by the typed result for task_type
    error_message = String(max_length=1000)
    data_quality_score = Float(min_value=0.0, max_value=1.0)
    requires_manual_review = Boolean(default=False)
    resolved_by = String(max_length=100)
    started_at = DateTime()
    completed_at = DateTime()
    execution_time_seconds = Float()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        item_id: str,
        order_id: str,
        task_type: TaskType,
        config: dict,
        max_retries: int,
        retry_delay_minutes: int,
    ):
        now = datetime.now(UTC)
        typed_config = parse_config(task_type, config)
        task = cls(
            item_id=item_id,
            order_id=order_id,
            task_type=task_type.value,
            status=TaskStatus.QUEUED.value,
            config=json.dumps(typed_config.to_dict(), default=str),
            max_retries=max_retries,
            retry_delay_minutes=retry_delay_minutes,
            created_at=now,
            updated_at=now,
        )
        task.raise_(
            TaskEnqueued(
                task_id=str(task.id),
                item_id=item_id,
                order_id=order_id,
                task_type=task_type.value,
                enqueued_at=now,
            )
        )
        return task

    @property
    def config_data(self) -> dict:
        return json.loads(self.config) if self.config else {}

    @property
    def result_data(self) -> dict:
        return json.loads(self.result_payload) if self.result_payload else {}

    @property
    def attempt(self) -> int:
        """Zero-based number of the current (or most recent) attempt."""
        return self.retry_count or 0

    def is_due(self, as_of: datetime) -> bool:
        if TaskStatus(self.status) != TaskStatus.RETRY:
            return False
        return self.next_retry_at is None or as_utc(self.next_retry_at) <= as_utc(as_of)

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: TaskStatus) -> None:
        current = TaskStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------
    def start(self, as_of: datetime | None = None) -> None:
        """Hand the task to an agent for its next attempt."""
        self._assert_can_transition(TaskStatus.RUNNING)
        now = as_of or datetime.now(UTC)
        if not self.is_due(now) and TaskStatus(self.status) == TaskStatus.RETRY:
            raise ValidationError({"next_retry_at": ["Retry is not due yet"]})

        self.status = TaskStatus.RUNNING.value
        self.started_at = now
        self.next_retry_at = None
        self.updated_at = now
        self.raise_(
            TaskStarted(
                task_id=str(self.id),
                item_id=str(self.item_id),
                task_type=self.task_type,
                attempt=self.attempt,
                started_at=now,
            )
        )

    def _complete(
        self,
        result: dict,
        data_quality_score: float | None,
        execution_time_seconds: float | None,
        min_data_quality: float,
        resolved_by: str | None = None,
    ) -> None:
        typed_result = parse_result(TaskType(self.task_type), result)
        now = datetime.now(UTC)
        self.status = TaskStatus.COMPLETED.value
        self.success = True
        self.result_payload = json.dumps(typed_result.to_dict(), default=str)
        self.error_message = None
        self.data_quality_score = data_quality_score
        self.requires_manual_review = data_quality_score is not None and data_quality_score < min_data_quality
        self.resolved_by = resolved_by
        self.completed_at = now
        if execution_time_seconds is None and self.started_at is not None:
            execution_time_seconds = (now - as_utc(self.started_at)).total_seconds()
        self.execution_time_seconds = execution_time_seconds
        self.updated_at = now
        self.raise_(
            TaskSucceeded(
                task_id=str(self.id),
                item_id=str(self.item_id),
                order_id=str(self.order_id),
                task_type=self.task_type,
                result=self.result_payload,
                data_quality_score=data_quality_score,
                requires_manual_review=self.requires_manual_review,
                resolved_by=resolved_by,
                completed_at=now,
            )
        )

    def record_success(
        self,
        result: dict,
        min_data_quality: float,
        data_quality_score: float | None = None,
        execution_time_seconds: float | None = None,
    ) -> None:
        """Store the agent's result; low-quality data is flagged for human review."""
        if TaskStatus(self.status) != TaskStatus.RUNNING:
            raise ValidationError({"status": ["Only a running task can report success"]})
        self._complete(result, data_quality_score, execution_time_seconds, min_data_quality)

    def record_failure(self, error_message: str, as_of: datetime | None = None) -> None:
        """Schedule another attempt, or escalate once retries are exhausted."""
        self._assert_can_transition(TaskStatus.RETRY)
        now = as_of or datetime.now(UTC)
        self.retry_count = (self.retry_count or 0) + 1
        self.success = False
        self.error_message = error_message
        self.updated_at = now

        if self.retry_count < self.max_retries:
            self.status = TaskStatus.RETRY.value
            self.next_retry_at = now + timedelta(minutes=self.retry_delay_minutes)
            self.raise_(
                TaskRetryScheduled(
                    task_id=str(self.id),
                    item_id=str(self.item_id),
                    task_type=self.task_type,
                    retry_count=self.retry_count,
                    error_message=error_message,
                    next_retry_at=self.next_retry_at,
                )
            )
        else:
            self.status = TaskStatus.MANUAL_REQUIRED.value
            self.next_retry_at = None
            self.requires_manual_review = True
            self.raise_(
                TaskEscalated(
                    task_id=str(self.id),
                    item_id=str(self.item_id),
                    order_id=str(self.order_id),
                    task_type=self.task_type,
                    retry_count=self.retry_count,
                    error_message=error_message,
                    escalated_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Manual handling
    # -------------------------------------------------------------------
    def resolve_manually(self, result: dict, resolved_by: str) -> None:
        """Staff performed the action by hand; apply it like an automated success."""
        if TaskStatus(self.status) != TaskStatus.MANUAL_REQUIRED:
            raise ValidationError({"status": ["Only tasks awaiting manual work can be resolved by hand"]})
        self._complete(result, None, None, min_data_quality=0.0, resolved_by=resolved_by)

    def abandon(self, reason: str, abandoned_by: str) -> None:
        self._assert_can_transition(TaskStatus.FAILED)
        now = datetime.now(UTC)
        self.status = TaskStatus.FAILED.value
        self.success = False
        self.error_message = reason
        self.resolved_by = abandoned_by
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            TaskAbandoned(
                task_id=str(self.id),
                item_id=str(self.item_id),
                task_type=self.task_type,
                reason=reason,
                abandoned_by=abandoned_by,
                abandoned_at=now,
            )
        )
