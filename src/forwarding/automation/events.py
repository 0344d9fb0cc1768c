"""AutomationTask domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from forwarding.domain import forwarding


@forwarding.event(part_of="AutomationTask")
class TaskEnqueued:
    """An external action was requested for an item."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    task_type = String(required=True)
    enqueued_at = DateTime(required=True)


@forwarding.event(part_of="AutomationTask")
class TaskStarted:
    """A task was handed to an automation agent."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    task_type = String(required=True)
    attempt = Integer(required=True)
    started_at = DateTime(required=True)


@forwarding.event(part_of="AutomationTask")
class TaskSucceeded:
    """The agent completed the action and returned a result."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    task_type = String(required=True)
    result = Text(required=True)  # JSON, shape depends on task_type
    data_quality_score = Float()
    requires_manual_review = Boolean(default=False)
    resolved_by = String()  # set when staff completed the task by hand
    completed_at = DateTime(required=True)


@forwarding.event(part_of="AutomationTask")
class TaskRetryScheduled:
    """An attempt failed and another one is scheduled."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    task_type = String(required=True)
    retry_count = Integer(required=True)
    error_message = String(max_length=1000)
    next_retry_at = DateTime(required=True)


@forwarding.event(part_of="AutomationTask")
class TaskEscalated:
    """Retries are exhausted; a human must finish the action."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    task_type = String(required=True)
    retry_count = Integer(required=True)
    error_message = String(max_length=1000)
    escalated_at = DateTime(required=True)


@forwarding.event(part_of="AutomationTask")
class TaskAbandoned:
    """Staff gave up on a task that required manual work."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    task_type = String(required=True)
    reason = String(required=True, max_length=500)
    abandoned_by = String(required=True)
    abandoned_at = DateTime(required=True)
