"""Exceptions raised when a revision is rejected or left unanswered.

Both outcomes hand the item to the exception workflow as a cancellation
candidate; an expired revision is never approved on the customer's behalf.
"""

from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item_exception.detection import detect
from forwarding.item_exception.exception import DetectedBy, ExceptionType, ItemException
from forwarding.revision.events import RevisionExpired, RevisionRejected
from forwarding.revision.revision import ChangeType

_WEIGHT_ONLY = {ChangeType.WEIGHT_INCREASE.value, ChangeType.WEIGHT_DECREASE.value}


def _variance_type(change_type: str) -> ExceptionType:
    return ExceptionType.WEIGHT_VARIANCE if change_type in _WEIGHT_ONLY else ExceptionType.PRICE_VARIANCE


@forwarding.event_handler(part_of=ItemException, stream_category="forwarding::revision")
class RevisionExceptionEventHandler:
    @handle(RevisionRejected)
    def on_revision_rejected(self, event: RevisionRejected) -> None:
        detect(
            str(event.item_id),
            _variance_type(event.change_type),
            DetectedBy.CUSTOMER_REPORT,
            description=f"Customer rejected revision {event.revision_id}" + (f": {event.note}" if event.note else ""),
            financial_impact=abs(event.total_cost_impact),
        )

    @handle(RevisionExpired)
    def on_revision_expired(self, event: RevisionExpired) -> None:
        detect(
            str(event.item_id),
            _variance_type(event.change_type),
            DetectedBy.AUTOMATION,
            description=f"Revision {event.revision_id} expired without a customer response",
            financial_impact=abs(event.total_cost_impact),
        )
