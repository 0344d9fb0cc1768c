"""Opening revisions — from tracking scrapes or staff-entered seller data.

A scrape whose price or weight differs from the item's current values by
more than the configured tolerance opens a revision instead of changing the
item directly. Only one revision per item is open at a time.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from forwarding.automation.events import TaskSucceeded
from forwarding.automation.task import TaskType
from forwarding.domain import forwarding
from forwarding.item.item import REVISABLE_STATUSES, ItemStatus, OrderItem
from forwarding.revision.revision import Revision

logger = structlog.get_logger(__name__)


def differs_beyond_tolerance(item: OrderItem, new_price: float | None, new_weight: float | None) -> bool:
    price_moved = new_price is not None and abs(new_price - item.current_price) > current_domain.SCRAPE_PRICE_TOLERANCE
    weight_moved = (
        new_weight is not None and abs(new_weight - item.current_weight) > current_domain.SCRAPE_WEIGHT_TOLERANCE
    )
    return price_moved or weight_moved


def open_revision(
    item: OrderItem,
    new_price: float | None,
    new_weight: float | None,
    source_task_id: str | None = None,
) -> Revision:
    """Open (and possibly auto-approve) a revision for ``item``."""
    if ItemStatus(item.status) not in REVISABLE_STATUSES:
        raise ValidationError({"status": [f"Item in {item.status} cannot be revised"]})

    repo = current_domain.repository_for(Revision)
    if repo.open_for_item(str(item.id)) is not None:
        raise ValidationError({"item_id": ["Item already has an open revision"]})

    revision = Revision.open(
        item,
        new_price=item.current_price if new_price is None else new_price,
        new_weight=item.current_weight if new_weight is None else new_weight,
        response_hours=current_domain.CUSTOMER_RESPONSE_HOURS,
        management_approval_amount=current_domain.MANAGEMENT_APPROVAL_AMOUNT,
        source_task_id=source_task_id,
    )
    repo.add(revision)
    logger.info(
        "Revision opened",
        revision_id=str(revision.id),
        item_id=str(item.id),
        change_type=revision.change_type,
        total_cost_impact=revision.total_cost_impact,
        status=revision.customer_approval_status,
    )
    return revision


@forwarding.command(part_of="Revision")
class OpenRevision:
    """Staff entered updated seller price/weight for an item."""

    item_id = Identifier(required=True)
    new_price = Float(min_value=0.0)
    new_weight = Float(min_value=0.0)


@forwarding.command_handler(part_of=Revision)
class OpenRevisionHandler:
    @handle(OpenRevision)
    def open(self, command):
        item = current_domain.repository_for(OrderItem).get(command.item_id)
        if not differs_beyond_tolerance(item, command.new_price, command.new_weight):
            raise ValidationError({"new_price": ["No price or weight change beyond tolerance"]})
        revision = open_revision(item, command.new_price, command.new_weight)
        return str(revision.id)


@forwarding.event_handler(part_of=Revision, stream_category="forwarding::automation_task")
class ScrapeRevisionHandler:
    """Compares scraped seller data against the item."""

    @handle(TaskSucceeded)
    def on_task_succeeded(self, event: TaskSucceeded) -> None:
        if event.task_type != TaskType.TRACKING_SCRAPE.value:
            return

        result = json.loads(event.result)
        item = current_domain.repository_for(OrderItem).get(str(event.item_id))
        if not differs_beyond_tolerance(item, result.get("price"), result.get("weight")):
            return

        if event.requires_manual_review:
            logger.warning(
                "Scraped variance needs manual review before revision",
                task_id=str(event.task_id),
                item_id=str(event.item_id),
                data_quality_score=event.data_quality_score,
            )
            return
        if ItemStatus(item.status) not in REVISABLE_STATUSES:
            logger.info("Scraped variance ignored for item status", item_id=str(item.id), status=item.status)
            return
        if current_domain.repository_for(Revision).open_for_item(str(item.id)) is not None:
            logger.info("Scraped variance ignored, revision already open", item_id=str(item.id))
            return

        open_revision(item, result.get("price"), result.get("weight"), source_task_id=str(event.task_id))
