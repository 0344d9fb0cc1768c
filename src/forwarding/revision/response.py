"""Customer response to a pending revision."""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.revision.revision import Decision, Revision

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Revision")
class RespondToRevision:
    revision_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    decision = String(required=True, max_length=10, choices=Decision)
    note = Text()


@forwarding.command_handler(part_of=Revision)
class RevisionResponseHandler:
    @handle(RespondToRevision)
    def respond(self, command):
        repo = current_domain.repository_for(Revision)
        revision = repo.get(command.revision_id)
        revision.respond(Decision(command.decision), command.actor_id, note=command.note)
        repo.add(revision)
        logger.info(
            "Revision answered",
            revision_id=str(revision.id),
            decision=command.decision,
            responded_by=command.actor_id,
        )
        return revision.to_dict()
