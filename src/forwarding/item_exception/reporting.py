"""Exceptions reported by staff, customers, or detection handlers."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item.item import OrderItem
from forwarding.item_exception.exception import DetectedBy, ExceptionType, ItemException, Resolution

logger = structlog.get_logger(__name__)


def report_exception(
    item_id: str,
    exception_type: ExceptionType,
    detected_by: DetectedBy,
    description: str | None = None,
    financial_impact: float = 0.0,
    shipment_id: str | None = None,
    recommended_resolution: Resolution | None = None,
) -> ItemException:
    item = current_domain.repository_for(OrderItem).get(str(item_id))
    exc = ItemException.report(
        item,
        exception_type,
        detected_by,
        response_hours=current_domain.CUSTOMER_RESPONSE_HOURS,
        description=description,
        financial_impact=financial_impact,
        shipment_id=shipment_id,
        recommended_resolution=recommended_resolution,
    )
    current_domain.repository_for(ItemException).add(exc)
    logger.info(
        "Exception reported",
        exception_id=str(exc.id),
        item_id=str(item_id),
        exception_type=exception_type.value,
        severity=exc.severity,
        recommended=exc.recommended_resolution,
    )
    return exc


@forwarding.command(part_of="ItemException")
class ReportException:
    item_id = Identifier(required=True)
    exception_type = String(required=True, max_length=30, choices=ExceptionType)
    detected_by = String(required=True, max_length=30, choices=DetectedBy)
    description = Text()
    financial_impact = Float(default=0.0, min_value=0.0)
    shipment_id = Identifier()
    recommended_resolution = String(max_length=30, choices=Resolution)


@forwarding.command_handler(part_of=ItemException)
class ReportExceptionHandler:
    @handle(ReportException)
    def report(self, command):
        exc = report_exception(
            command.item_id,
            ExceptionType(command.exception_type),
            DetectedBy(command.detected_by),
            description=command.description,
            financial_impact=command.financial_impact or 0.0,
            shipment_id=command.shipment_id,
            recommended_resolution=(
                Resolution(command.recommended_resolution) if command.recommended_resolution else None
            ),
        )
        return str(exc.id)
