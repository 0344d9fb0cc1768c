"""Error taxonomy for the forwarding context.

Workflow failures that the caller must act on are modelled as Protean
exceptions so the FastAPI exception handlers map them to HTTP responses:
``InvalidStateError`` → 409, ``InvalidOperationError`` → 422,
``ValidationError`` → 400.
"""

from protean.exceptions import InvalidOperationError, InvalidStateError, ValidationError


class DeadlinePassed(InvalidStateError):
    """A customer response arrived after the response deadline."""


class AlreadyResolved(InvalidStateError):
    """The revision or exception has already been closed."""


class VersionConflict(InvalidStateError):
    """The caller acted on a stale read of the aggregate.

    Raised when a command carries an ``expected_version`` that no longer
    matches the stored aggregate. The caller must re-read and retry.
    """


class CapabilityRequired(InvalidOperationError):
    """The acting role does not hold the capability the operation needs."""


class MissingBaseline(ValidationError):
    """Order creation was attempted without a usable quote snapshot."""


def assert_expected_version(aggregate, expected_version: int | None) -> None:
    """Reject the write when the caller's view of the aggregate is stale."""
    if expected_version is None:
        return
    if aggregate._version != expected_version:
        raise VersionConflict(
            f"{aggregate.__class__.__name__} {aggregate.id} is at version "
            f"{aggregate._version}, expected {expected_version}"
        )
