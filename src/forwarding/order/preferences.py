"""Admin-only edits to an order's consolidation preferences."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.order.order import ConsolidationPreference, Order
from forwarding.shared.actors import Capability, require_capability
from forwarding.shared.errors import assert_expected_version


@forwarding.command(part_of="Order")
class ChangeOrderPreferences:
    """Change the primary warehouse or consolidation preference of an order."""

    order_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    primary_warehouse = String(max_length=30)
    consolidation_preference = String(max_length=20, choices=ConsolidationPreference)
    max_consolidation_wait_days = Integer(min_value=1, max_value=30)
    expected_version = Integer()


@forwarding.command_handler(part_of=Order)
class OrderPreferencesHandler:
    @handle(ChangeOrderPreferences)
    def change_preferences(self, command):
        require_capability(command.actor_role, Capability.MANAGE_ORDERS)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_expected_version(order, command.expected_version)
        order.change_preferences(
            changed_by=command.actor_id,
            consolidation_preference=command.consolidation_preference,
            max_consolidation_wait_days=command.max_consolidation_wait_days,
            primary_warehouse=command.primary_warehouse,
        )
        repo.add(order)
