"""Exception expiry — periodic sweep that applies recommended resolutions.

Unlike revisions, an unanswered exception is settled on the customer's
behalf with its recommended resolution. Escalated exceptions belong to
staff and are skipped.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, InvalidStateError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item_exception.exception import ItemException

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="ItemException")
class ExpireExceptions:
    """Auto-resolve every exception whose response deadline has passed."""

    as_of = DateTime()  # Optional: defaults to now


@forwarding.command(part_of="ItemException")
class ExpireException:
    exception_id = Identifier(required=True)
    as_of = DateTime()


@forwarding.command_handler(part_of=ItemException)
class ExceptionExpiryHandler:
    @handle(ExpireExceptions)
    def expire_exceptions(self, command):
        as_of = command.as_of or datetime.now(UTC)
        overdue = [e for e in current_domain.repository_for(ItemException).awaiting_response() if e.is_overdue(as_of)]
        if not overdue:
            logger.info("No overdue exceptions", as_of=as_of.isoformat())
            return 0

        resolved_count = 0
        for exc in overdue:
            try:
                current_domain.process(
                    ExpireException(exception_id=str(exc.id), as_of=as_of),
                    asynchronous=False,
                )
                resolved_count += 1
                logger.info(
                    "Exception auto-resolved",
                    exception_id=str(exc.id),
                    item_id=str(exc.item_id),
                    resolution=exc.recommended_resolution,
                )
            except (ValidationError, InvalidOperationError, InvalidStateError) as err:
                logger.warning("Failed to auto-resolve exception", exception_id=str(exc.id), error=str(err))

        logger.info("Exception expiry sweep complete", resolved_count=resolved_count)
        return resolved_count

    @handle(ExpireException)
    def expire_exception(self, command):
        repo = current_domain.repository_for(ItemException)
        exc = repo.get(command.exception_id)
        exc.expire(command.as_of)
        repo.add(exc)
