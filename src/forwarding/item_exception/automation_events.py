"""Exceptions raised from automation outcomes.

Exhausted retries on an order placement open an ``automation_failed`` exception;
other task types only leave the escalated task for staff. Successful
checks can still reveal a problem: an inventory check that finds the product
out of stock, or a status check showing the seller cancelled the order.
"""

import json

from protean.utils.mixins import handle

from forwarding.automation.events import TaskEscalated, TaskSucceeded
from forwarding.automation.task import TaskType
from forwarding.domain import forwarding
from forwarding.item_exception.detection import detect
from forwarding.item_exception.exception import DetectedBy, ExceptionType, ItemException

_SELLER_CANCELLED_STATUSES = {"cancelled", "canceled"}


@forwarding.event_handler(part_of=ItemException, stream_category="forwarding::automation_task")
class AutomationExceptionEventHandler:
    @handle(TaskEscalated)
    def on_task_escalated(self, event: TaskEscalated) -> None:
        if event.task_type != TaskType.ORDER_PLACEMENT.value:
            return
        detect(
            str(event.item_id),
            ExceptionType.AUTOMATION_FAILED,
            DetectedBy.AUTOMATION,
            description=(
                f"{event.task_type} failed after {event.retry_count} attempts: {event.error_message or 'unknown error'}"
            ),
        )

    @handle(TaskSucceeded)
    def on_task_succeeded(self, event: TaskSucceeded) -> None:
        result = json.loads(event.result)

        if event.task_type == TaskType.INVENTORY_CHECK.value and not result.get("in_stock"):
            detect(
                str(event.item_id),
                ExceptionType.SELLER_OUT_OF_STOCK,
                DetectedBy.AUTOMATION,
                description="Seller reports the product out of stock",
            )
        elif event.task_type == TaskType.STATUS_CHECK.value:
            seller_status = (result.get("seller_status") or "").lower()
            if seller_status in _SELLER_CANCELLED_STATUSES:
                detect(
                    str(event.item_id),
                    ExceptionType.SELLER_CANCELLED,
                    DetectedBy.SELLER_NOTIFICATION,
                    description=f"Seller order status: {seller_status}",
                )
