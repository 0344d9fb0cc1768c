"""Revision expiry — periodic sweep over unanswered revisions.

Unanswered revisions are never approved by default: each one is marked
``expired`` and escalated to the exception workflow.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, InvalidStateError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.revision.revision import Revision

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Revision")
class ExpireRevisions:
    """Expire every pending revision whose response deadline has passed."""

    as_of = DateTime()  # Optional: defaults to now


@forwarding.command(part_of="Revision")
class ExpireRevision:
    revision_id = Identifier(required=True)
    as_of = DateTime()


@forwarding.command_handler(part_of=Revision)
class RevisionExpiryHandler:
    @handle(ExpireRevisions)
    def expire_revisions(self, command):
        as_of = command.as_of or datetime.now(UTC)
        overdue = [r for r in current_domain.repository_for(Revision).pending() if r.is_overdue(as_of)]
        if not overdue:
            logger.info("No overdue revisions", as_of=as_of.isoformat())
            return 0

        expired_count = 0
        for revision in overdue:
            try:
                current_domain.process(
                    ExpireRevision(revision_id=str(revision.id), as_of=as_of),
                    asynchronous=False,
                )
                expired_count += 1
                logger.info(
                    "Revision expired",
                    revision_id=str(revision.id),
                    item_id=str(revision.item_id),
                    deadline=str(revision.customer_response_deadline),
                )
            except (ValidationError, InvalidOperationError, InvalidStateError) as exc:
                logger.warning("Failed to expire revision", revision_id=str(revision.id), error=str(exc))

        logger.info("Revision expiry sweep complete", expired_count=expired_count)
        return expired_count

    @handle(ExpireRevision)
    def expire_revision(self, command):
        repo = current_domain.repository_for(Revision)
        revision = repo.get(command.revision_id)
        revision.expire(command.as_of)
        repo.add(revision)
