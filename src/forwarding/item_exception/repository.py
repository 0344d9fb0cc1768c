"""Repository for the ItemException aggregate."""

from forwarding.domain import forwarding
from forwarding.item_exception.exception import DetectedBy, ItemException, ResolutionStatus


@forwarding.repository(part_of=ItemException)
class ItemExceptionRepository:
    def awaiting_response(self) -> list[ItemException]:
        """Exceptions the deadline policy still applies to."""
        return (
            self._dao.query.filter(
                resolution_status__in=[ResolutionStatus.PENDING.value, ResolutionStatus.IN_PROGRESS.value]
            )
            .order_by("created_at")
            .limit(None)
            .all()
            .items
        )

    def for_item(self, item_id: str) -> list[ItemException]:
        return self._dao.query.filter(item_id=str(item_id)).order_by("created_at").limit(None).all().items

    def for_order(self, order_id: str) -> list[ItemException]:
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").limit(None).all().items

    def open_of_type(self, item_id: str, exception_type: str) -> ItemException | None:
        return self._dao.query.filter(
            item_id=str(item_id),
            exception_type=exception_type,
            resolution_status__in=[
                ResolutionStatus.PENDING.value,
                ResolutionStatus.IN_PROGRESS.value,
                ResolutionStatus.ESCALATED.value,
            ],
        ).all().first

    def open_for_shipment(self, shipment_id: str, exception_types: list[str]) -> list[ItemException]:
        """Carrier-raised exceptions nobody has escalated or resolved yet."""
        return (
            self._dao.query.filter(
                shipment_id=str(shipment_id),
                detected_by=DetectedBy.AUTOMATION.value,
                exception_type__in=exception_types,
                resolution_status__in=[ResolutionStatus.PENDING.value, ResolutionStatus.IN_PROGRESS.value],
            )
            .limit(None)
            .all()
            .items
        )
