"""Repository for the Revision aggregate."""

from forwarding.domain import forwarding
from forwarding.revision.revision import ApprovalStatus, Revision


@forwarding.repository(part_of=Revision)
class RevisionRepository:
    def pending(self) -> list[Revision]:
        return (
            self._dao.query.filter(customer_approval_status=ApprovalStatus.PENDING.value)
            .order_by("created_at")
            .limit(None)
            .all()
            .items
        )

    def open_for_item(self, item_id: str) -> Revision | None:
        return self._dao.query.filter(
            item_id=str(item_id),
            customer_approval_status=ApprovalStatus.PENDING.value,
        ).all().first

    def for_item(self, item_id: str) -> list[Revision]:
        return self._dao.query.filter(item_id=str(item_id)).order_by("created_at").limit(None).all().items
