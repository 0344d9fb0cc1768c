"""Shared guard for exceptions raised by detection handlers."""

import structlog
from protean.utils.globals import current_domain

from forwarding.item_exception.exception import DetectedBy, ExceptionType, ItemException
from forwarding.item_exception.reporting import report_exception

logger = structlog.get_logger(__name__)


def detect(
    item_id: str,
    exception_type: ExceptionType,
    detected_by: DetectedBy,
    description: str | None = None,
    financial_impact: float = 0.0,
    shipment_id: str | None = None,
) -> ItemException | None:
    """Report an exception unless one of the same type is still open for the item."""
    existing = current_domain.repository_for(ItemException).open_of_type(item_id, exception_type.value)
    if existing is not None:
        logger.info(
            "Exception already open for item",
            item_id=str(item_id),
            exception_type=exception_type.value,
            exception_id=str(existing.id),
        )
        return None
    return report_exception(
        item_id,
        exception_type,
        detected_by,
        description=description,
        financial_impact=financial_impact,
        shipment_id=shipment_id,
    )
