"""Repository for the AutomationTask aggregate."""

from forwarding.automation.task import IN_FLIGHT_STATUSES, AutomationTask, TaskStatus
from forwarding.domain import forwarding


@forwarding.repository(part_of=AutomationTask)
class AutomationTaskRepository:
    def in_flight(self, item_id: str, task_type: str) -> list[AutomationTask]:
        """Tasks currently holding the (item, task type) slot."""
        return (
            self._dao.query.filter(
                item_id=str(item_id),
                task_type=task_type,
                status__in=[s.value for s in IN_FLIGHT_STATUSES],
            )
            .all()
            .items
        )

    def next_queued(self, item_id: str, task_type: str) -> AutomationTask | None:
        """Oldest queued task waiting for the (item, task type) slot."""
        return (
            self._dao.query.filter(item_id=str(item_id), task_type=task_type, status=TaskStatus.QUEUED.value)
            .order_by("created_at")
            .all()
            .first
        )

    def awaiting_retry(self) -> list[AutomationTask]:
        return self._dao.query.filter(status=TaskStatus.RETRY.value).limit(None).all().items

    def for_item(self, item_id: str) -> list[AutomationTask]:
        return self._dao.query.filter(item_id=str(item_id)).order_by("created_at").limit(None).all().items
