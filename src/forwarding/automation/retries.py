"""Retry dispatch — sweep command that re-runs due automation tasks.

Triggered periodically by the sweeper process or the maintenance API. Each
due task is dispatched through its own command so one failing task cannot
hold back the others.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, InvalidStateError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from forwarding.automation.runner import dispatch
from forwarding.automation.task import AutomationTask
from forwarding.domain import forwarding

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="AutomationTask")
class ProcessDueRetries:
    """Dispatch every task whose retry delay has elapsed."""

    as_of = DateTime()  # Optional: defaults to now


@forwarding.command(part_of="AutomationTask")
class DispatchRetry:
    task_id = Identifier(required=True)
    as_of = DateTime()


@forwarding.command_handler(part_of=AutomationTask)
class RetryDispatchHandler:
    @handle(ProcessDueRetries)
    def process_due_retries(self, command):
        as_of = command.as_of or datetime.now(UTC)
        due = [task for task in current_domain.repository_for(AutomationTask).awaiting_retry() if task.is_due(as_of)]
        if not due:
            logger.info("No automation retries due", as_of=as_of.isoformat())
            return 0

        dispatched = 0
        for task in due:
            try:
                current_domain.process(DispatchRetry(task_id=str(task.id), as_of=as_of), asynchronous=False)
                dispatched += 1
            except (ValidationError, InvalidOperationError, InvalidStateError) as exc:
                logger.warning(
                    "Failed to dispatch automation retry",
                    task_id=str(task.id),
                    error=str(exc),
                )

        logger.info("Automation retry sweep complete", dispatched=dispatched)
        return dispatched

    @handle(DispatchRetry)
    def dispatch_retry(self, command):
        repo = current_domain.repository_for(AutomationTask)
        task = repo.get(command.task_id)
        dispatch(task, as_of=command.as_of)
        repo.add(task)
