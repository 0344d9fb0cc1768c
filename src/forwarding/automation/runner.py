"""Automation task runner — enqueue, dispatch and result reporting.

At most one task per (item, task type) is in flight at a time. A request
that arrives while the slot is taken is stored as ``queued`` and dispatched
as soon as the in-flight task completes, escalates or is abandoned.

Agent results are deduplicated by task id and attempt number: a report for
a task that is no longer running, or for an earlier attempt, is ignored.
"""

import json
from datetime import datetime

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from forwarding.agent import get_agent
from forwarding.automation.events import TaskAbandoned, TaskEscalated, TaskSucceeded
from forwarding.automation.task import AutomationTask, TaskStatus, TaskType
from forwarding.domain import forwarding
from forwarding.item.item import OrderItem
from forwarding.shared.actors import Capability, require_capability

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Runner helpers
# ---------------------------------------------------------------------------
def dispatch(task: AutomationTask, as_of: datetime | None = None) -> None:
    """Start the task's next attempt and hand it to the automation agent."""
    task.start(as_of)
    outcome = get_agent().submit(str(task.id), task.task_type, task.config_data, task.attempt)
    if outcome.get("accepted"):
        logger.info(
            "Automation task dispatched",
            task_id=str(task.id),
            task_type=task.task_type,
            attempt=task.attempt,
            reference=outcome.get("reference"),
        )
        return

    logger.warning(
        "Automation agent rejected task",
        task_id=str(task.id),
        task_type=task.task_type,
        error=outcome.get("error"),
    )
    task.record_failure(outcome.get("error") or "Agent rejected submission", as_of)


def enqueue_task(item_id: str, order_id: str, task_type: TaskType, config: dict) -> AutomationTask:
    """Create a task and dispatch it immediately if its slot is free."""
    repo = current_domain.repository_for(AutomationTask)
    task = AutomationTask.create(
        item_id=item_id,
        order_id=order_id,
        task_type=task_type,
        config=config,
        max_retries=current_domain.AUTOMATION_MAX_RETRIES,
        retry_delay_minutes=current_domain.AUTOMATION_RETRY_DELAY_MINUTES,
    )

    if repo.in_flight(item_id, task_type.value):
        logger.info(
            "Automation task queued behind in-flight task",
            task_id=str(task.id),
            item_id=item_id,
            task_type=task_type.value,
        )
    else:
        dispatch(task)

    repo.add(task)
    return task


def start_next(item_id: str, task_type: str) -> AutomationTask | None:
    """Dispatch the oldest queued task for a slot that has just been freed."""
    repo = current_domain.repository_for(AutomationTask)
    if repo.in_flight(item_id, task_type):
        return None

    task = repo.next_queued(item_id, task_type)
    if task is None:
        return None

    dispatch(task)
    repo.add(task)
    return task


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@forwarding.command(part_of="AutomationTask")
class EnqueueTask:
    """Request an external action for an item."""

    item_id = Identifier(required=True)
    task_type = String(required=True, max_length=30, choices=TaskType)
    config = Text()  # JSON; shape depends on task_type


@forwarding.command(part_of="AutomationTask")
class ReportTaskResult:
    """An automation agent reports the outcome of a task attempt."""

    task_id = Identifier(required=True)
    success = Boolean(required=True)
    attempt = Integer(min_value=0)
    result_json = Text()  # JSON result
    error_message = String(max_length=1000)
    data_quality_score = Float(min_value=0.0, max_value=1.0)
    execution_time_seconds = Float(min_value=0.0)


@forwarding.command(part_of="AutomationTask")
class ResolveTaskManually:
    """Staff completed a manual-required task by hand."""

    task_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    result_json = Text(required=True)  # JSON result, same shape an agent would send


@forwarding.command(part_of="AutomationTask")
class AbandonTask:
    """Staff gave up on a manual-required task."""

    task_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    reason = String(required=True, max_length=500)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
@forwarding.command_handler(part_of=AutomationTask)
class AutomationTaskHandler:
    @handle(EnqueueTask)
    def enqueue(self, command):
        item = current_domain.repository_for(OrderItem).get(command.item_id)
        config = json.loads(command.config) if command.config else {}
        config.setdefault("seller_platform", item.seller_platform)
        task = enqueue_task(str(item.id), str(item.order_id), TaskType(command.task_type), config)
        return str(task.id)

    @handle(ReportTaskResult)
    def report_result(self, command):
        repo = current_domain.repository_for(AutomationTask)
        task = repo.get(command.task_id)

        stale_attempt = command.attempt is not None and command.attempt != task.attempt
        if TaskStatus(task.status) != TaskStatus.RUNNING or stale_attempt:
            logger.info(
                "Ignoring duplicate task result",
                task_id=str(task.id),
                status=task.status,
                reported_attempt=command.attempt,
                current_attempt=task.attempt,
            )
            return {"task_id": str(task.id), "status": task.status, "applied": False}

        if command.success:
            payload = json.loads(command.result_json) if command.result_json else {}
            task.record_success(
                payload,
                min_data_quality=current_domain.AUTOMATION_MIN_DATA_QUALITY,
                data_quality_score=command.data_quality_score,
                execution_time_seconds=command.execution_time_seconds,
            )
        else:
            task.record_failure(command.error_message or "Unknown automation error")
            log = logger.warning if TaskStatus(task.status) == TaskStatus.MANUAL_REQUIRED else logger.info
            log(
                "Automation task attempt failed",
                task_id=str(task.id),
                retry_count=task.retry_count,
                status=task.status,
                error=command.error_message,
            )

        repo.add(task)
        return {"task_id": str(task.id), "status": task.status, "applied": True}

    @handle(ResolveTaskManually)
    def resolve_manually(self, command):
        require_capability(command.actor_role, Capability.RESOLVE_TASKS)
        repo = current_domain.repository_for(AutomationTask)
        task = repo.get(command.task_id)
        task.resolve_manually(json.loads(command.result_json), resolved_by=command.actor_id)
        repo.add(task)

    @handle(AbandonTask)
    def abandon(self, command):
        require_capability(command.actor_role, Capability.RESOLVE_TASKS)
        repo = current_domain.repository_for(AutomationTask)
        task = repo.get(command.task_id)
        task.abandon(command.reason, abandoned_by=command.actor_id)
        repo.add(task)


@forwarding.event_handler(part_of=AutomationTask)
class TaskSlotHandler:
    """Dispatches the next queued task once a slot is released."""

    @handle(TaskSucceeded)
    def on_task_succeeded(self, event: TaskSucceeded) -> None:
        start_next(str(event.item_id), event.task_type)

    @handle(TaskEscalated)
    def on_task_escalated(self, event: TaskEscalated) -> None:
        logger.warning(
            "Automation task requires manual handling",
            task_id=str(event.task_id),
            item_id=str(event.item_id),
            task_type=event.task_type,
            error=event.error_message,
        )
        start_next(str(event.item_id), event.task_type)

    @handle(TaskAbandoned)
    def on_task_abandoned(self, event: TaskAbandoned) -> None:
        start_next(str(event.item_id), event.task_type)
