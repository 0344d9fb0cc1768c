"""Administrative item status overrides."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.shared.actors import Capability, require_capability

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="OrderItem")
class ForceItemStatus:
    """Set an item's status outside the normal transition rules."""

    item_id = Identifier(required=True)
    status = String(required=True, max_length=30, choices=ItemStatus)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    reason = String(required=True, max_length=500)


@forwarding.command_handler(part_of=OrderItem)
class ItemAdministrationHandler:
    @handle(ForceItemStatus)
    def force_status(self, command):
        require_capability(command.actor_role, Capability.FORCE_STATUS)

        repo = current_domain.repository_for(OrderItem)
        item = repo.get(command.item_id)
        previous = item.status
        item.force_status(ItemStatus(command.status), actor_id=command.actor_id, reason=command.reason)
        repo.add(item)
        logger.warning(
            "Item status forced",
            item_id=str(item.id),
            from_status=previous,
            to_status=command.status,
            actor_id=command.actor_id,
        )
