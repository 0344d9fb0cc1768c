"""Item reactions to revision outcomes.

Only the revision workflow may move an item into or out of
``revision_pending``; these handlers are that path.
"""

from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from forwarding.domain import forwarding
from forwarding.item.item import OrderItem
from forwarding.revision.events import RevisionApproved, RevisionAutoApproved, RevisionOpened, RevisionRejected


@forwarding.event_handler(part_of=OrderItem, stream_category="forwarding::revision")
class ItemRevisionEventHandler:
    @handle(RevisionOpened)
    def on_revision_opened(self, event: RevisionOpened) -> None:
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(str(event.item_id))
        item.begin_revision()
        repo.add(item)

    @handle(RevisionAutoApproved)
    def on_revision_auto_approved(self, event: RevisionAutoApproved) -> None:
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(str(event.item_id))
        item.begin_revision()
        item.approve_revision(event.new_price, event.new_weight)
        repo.add(item)

    @handle(RevisionApproved)
    def on_revision_approved(self, event: RevisionApproved) -> None:
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(str(event.item_id))
        item.approve_revision(event.new_price, event.new_weight)
        repo.add(item)

    @handle(RevisionRejected)
    def on_revision_rejected(self, event: RevisionRejected) -> None:
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(str(event.item_id))
        item.reject_revision()
        repo.add(item)
