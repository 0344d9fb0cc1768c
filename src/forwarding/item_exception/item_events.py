"""Exceptions raised from item lifecycle events."""

from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item.events import QualityCheckRecorded
from forwarding.item_exception.detection import detect
from forwarding.item_exception.exception import DetectedBy, ExceptionType, ItemException


@forwarding.event_handler(part_of=ItemException, stream_category="forwarding::order_item")
class QualityExceptionEventHandler:
    @handle(QualityCheckRecorded)
    def on_quality_check_recorded(self, event: QualityCheckRecorded) -> None:
        if event.passed:
            return
        detect(
            str(event.item_id),
            ExceptionType.QUALITY_CHECK_FAILED,
            DetectedBy.QUALITY_CHECK,
            description=event.notes or f"Inspection failed ({event.inspector})",
            financial_impact=event.item_value,
        )
