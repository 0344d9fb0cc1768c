"""Customer response and staff handling of exceptions."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item_exception.exception import ItemException, Resolution
from forwarding.shared.actors import Capability, require_capability

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="ItemException")
class RespondToException:
    """The customer picks one of the offered resolutions."""

    exception_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    decision = String(required=True, max_length=30, choices=Resolution)
    note = Text()
    amount = Float(min_value=0.0)  # partial_refund_keep only


@forwarding.command(part_of="ItemException")
class AcknowledgeException:
    exception_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)


@forwarding.command(part_of="ItemException")
class EscalateException:
    exception_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    reason = Text()


@forwarding.command(part_of="ItemException")
class ResolveException:
    """Staff apply a resolution on the customer's behalf."""

    exception_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    resolution = String(required=True, max_length=30, choices=Resolution)
    notes = Text()
    amount = Float(min_value=0.0)


@forwarding.command(part_of="ItemException")
class CloseException:
    exception_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)


@forwarding.command_handler(part_of=ItemException)
class ExceptionResponseHandler:
    @handle(RespondToException)
    def respond(self, command):
        repo = current_domain.repository_for(ItemException)
        exc = repo.get(command.exception_id)
        exc.respond(Resolution(command.decision), command.actor_id, note=command.note, amount=command.amount)
        repo.add(exc)
        logger.info(
            "Exception answered",
            exception_id=str(exc.id),
            decision=command.decision,
            responded_by=command.actor_id,
        )
        return exc.to_dict()

    @handle(AcknowledgeException)
    def acknowledge(self, command):
        require_capability(command.actor_role, Capability.RESOLVE_TASKS)
        repo = current_domain.repository_for(ItemException)
        exc = repo.get(command.exception_id)
        exc.acknowledge(command.actor_id)
        repo.add(exc)

    @handle(EscalateException)
    def escalate(self, command):
        require_capability(command.actor_role, Capability.ESCALATE)
        repo = current_domain.repository_for(ItemException)
        exc = repo.get(command.exception_id)
        exc.escalate(command.actor_id, command.reason)
        repo.add(exc)
        logger.warning(
            "Exception escalated",
            exception_id=str(exc.id),
            severity=exc.severity,
            escalated_by=command.actor_id,
        )

    @handle(ResolveException)
    def resolve(self, command):
        require_capability(command.actor_role, Capability.RESOLVE_TASKS)
        repo = current_domain.repository_for(ItemException)
        exc = repo.get(command.exception_id)
        exc.resolve(Resolution(command.resolution), command.actor_id, notes=command.notes, amount=command.amount)
        repo.add(exc)
        return exc.to_dict()

    @handle(CloseException)
    def close(self, command):
        require_capability(command.actor_role, Capability.RESOLVE_TASKS)
        repo = current_domain.repository_for(ItemException)
        exc = repo.get(command.exception_id)
        exc.close(command.actor_id)
        repo.add(exc)
