"""Actor roles and the capabilities they hold.

Authorization is checked once per operation, at the command handler, and is
independent of the state-machine transition tables.
"""

from enum import Enum

from forwarding.shared.errors import CapabilityRequired


class ActorRole(Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"
    SYSTEM = "system"


class Capability(Enum):
    MANAGE_ORDERS = "manage_orders"
    FORCE_STATUS = "force_status"
    RESOLVE_TASKS = "resolve_tasks"
    ESCALATE = "escalate"
    RUN_SWEEPS = "run_sweeps"


_ROLE_CAPABILITIES = {
    ActorRole.CUSTOMER: set(),
    ActorRole.STAFF: {Capability.RESOLVE_TASKS, Capability.ESCALATE},
    ActorRole.ADMIN: {
        Capability.MANAGE_ORDERS,
        Capability.FORCE_STATUS,
        Capability.RESOLVE_TASKS,
        Capability.ESCALATE,
        Capability.RUN_SWEEPS,
    },
    ActorRole.SYSTEM: {Capability.RESOLVE_TASKS, Capability.ESCALATE, Capability.RUN_SWEEPS},
}


def has_capability(role: str | None, capability: Capability) -> bool:
    try:
        actor_role = ActorRole(role)
    except ValueError:
        return False
    return capability in _ROLE_CAPABILITIES[actor_role]


def require_capability(role: str | None, capability: Capability) -> None:
    """Raise ``CapabilityRequired`` unless ``role`` holds ``capability``."""
    if not has_capability(role, capability):
        raise CapabilityRequired(f"Role '{role}' lacks the '{capability.value}' capability")
