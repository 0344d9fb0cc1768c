"""Order creation — command and handler.

An order is created from the immutable quote snapshot once payment has
completed. The order and all of its items are written in a single unit of
work: a snapshot that cannot be turned into items rejects the whole order.
"""

import json

import structlog
from protean import handle
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item.item import ItemStatus, OrderItem
from forwarding.order.order import ConsolidationPreference, Order, PaymentMethod, QuoteSnapshot
from forwarding.shared.errors import MissingBaseline

logger = structlog.get_logger(__name__)

_REQUIRED_LINE_FIELDS = ("product_name", "price", "weight")


@forwarding.command(part_of="Order")
class CreateOrder:
    """Create an order from a paid quote."""

    customer_id = Identifier(required=True)
    quote_snapshot = Text()  # JSON: {"quote_id", "lines": [...], "total", "currency"}
    payment_id = String(max_length=100)
    payment_method = String(max_length=20, choices=PaymentMethod)
    amount_paid = Float(min_value=0.0)
    primary_warehouse = String(max_length=30)
    consolidation_preference = String(max_length=20, choices=ConsolidationPreference)
    max_consolidation_wait_days = Integer(min_value=1, max_value=30)
    payment_completed_at = DateTime()


def parse_snapshot(raw: str | dict | None) -> QuoteSnapshot:
    """Validate a quote snapshot payload and build the baseline value object."""
    if not raw:
        raise MissingBaseline({"quote_snapshot": ["A quote snapshot is required to create an order"]})

    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError:
            raise MissingBaseline({"quote_snapshot": ["Quote snapshot is not valid JSON"]})
    else:
        data = raw
    if not isinstance(data, dict):
        raise MissingBaseline({"quote_snapshot": ["Quote snapshot must be a JSON object"]})

    lines = data.get("lines") or []
    if not data.get("quote_id"):
        raise MissingBaseline({"quote_snapshot": ["Quote snapshot has no quote_id"]})
    if not isinstance(lines, list) or not lines:
        raise MissingBaseline({"quote_snapshot": ["Quote snapshot has no line items"]})

    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise MissingBaseline({"quote_snapshot": [f"Line {index} must be an object"]})
        missing = [f for f in _REQUIRED_LINE_FIELDS if line.get(f) is None]
        if missing:
            raise MissingBaseline({"quote_snapshot": [f"Line {index} is missing {', '.join(missing)}"]})
        try:
            float(line["price"])
            float(line["weight"])
            int(line.get("quantity") or 1)
        except (TypeError, ValueError):
            raise MissingBaseline({"quote_snapshot": [f"Line {index} has a non-numeric price, weight or quantity"]})

    total = data.get("total")
    if total is None:
        total = sum(float(line["price"]) * int(line.get("quantity") or 1) for line in lines)

    return QuoteSnapshot(
        quote_id=str(data["quote_id"]),
        lines=json.dumps(lines),
        total=total,
        total_weight=sum(float(line["weight"]) for line in lines),
        currency=data.get("currency", "USD"),
        captured_at=data.get("captured_at"),
    )


@forwarding.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        snapshot = parse_snapshot(command.quote_snapshot)

        order_repo = current_domain.repository_for(Order)
        existing = order_repo.find_by_quote(snapshot.quote_id)
        if existing is not None:
            logger.info(
                "Order already exists for quote",
                quote_id=snapshot.quote_id,
                order_id=str(existing.id),
            )
            return str(existing.id)

        order = Order.create(
            quote_snapshot=snapshot,
            customer_id=command.customer_id,
            total_paid=command.amount_paid if command.amount_paid is not None else snapshot.total,
            payment_id=command.payment_id,
            payment_method=command.payment_method,
            primary_warehouse=command.primary_warehouse,
            consolidation_preference=command.consolidation_preference,
            max_consolidation_wait_days=(
                command.max_consolidation_wait_days or current_domain.CONSOLIDATION_DEFAULT_WAIT_DAYS
            ),
            payment_completed_at=command.payment_completed_at,
        )

        item_repo = current_domain.repository_for(OrderItem)
        items = []
        for line in snapshot.line_items:
            line.setdefault("auto_approval_threshold_amount", current_domain.AUTO_APPROVAL_THRESHOLD_AMOUNT)
            line.setdefault("auto_approval_threshold_percentage", current_domain.AUTO_APPROVAL_THRESHOLD_PERCENTAGE)
            item = OrderItem.create(
                order_id=str(order.id),
                customer_id=command.customer_id,
                line=line,
                assigned_warehouse=command.primary_warehouse,
            )
            items.append(item)

        order.announce_creation([str(item.id) for item in items])
        order.apply_item_statuses([ItemStatus(item.status) for item in items])
        order_repo.add(order)
        for item in items:
            item_repo.add(item)

        logger.info(
            "Order created",
            order_id=str(order.id),
            quote_id=snapshot.quote_id,
            item_count=len(items),
        )
        return str(order.id)
