"""Deadline sweeps — the periodic half of the workflow.

Retries, revision and exception deadlines, and the consolidation wait are all
time-driven; nothing fires at the exact deadline. Each sweep is a command
that scans for elapsed deadlines as of a given instant.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from forwarding.automation.retries import ProcessDueRetries
from forwarding.consolidation.planning import PlanConsolidation
from forwarding.item_exception.expiry import ExpireExceptions
from forwarding.revision.expiry import ExpireRevisions

logger = structlog.get_logger(__name__)

# Executed in declaration order
SWEEPS = {
    "retries": ProcessDueRetries,
    "revisions": ExpireRevisions,
    "exceptions": ExpireExceptions,
    "consolidation": PlanConsolidation,
}


def run_sweeps(as_of: datetime | None = None, names: list[str] | None = None) -> dict[str, int]:
    """Run the named sweeps (all by default) and return the count each processed."""
    selected = names or list(SWEEPS)
    unknown = [name for name in selected if name not in SWEEPS]
    if unknown:
        raise ValidationError({"sweeps": [f"Unknown sweeps: {', '.join(unknown)}"]})

    as_of = as_of or datetime.now(UTC)
    results = {}
    for name in SWEEPS:
        if name not in selected:
            continue
        results[name] = current_domain.process(SWEEPS[name](as_of=as_of), asynchronous=False) or 0

    logger.info("Sweeps complete", as_of=as_of.isoformat(), **results)
    return results
