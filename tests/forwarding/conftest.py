import json
from datetime import UTC, datetime

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

_DEFAULT_LINES = [
    {
        "quote_line_id": "ql-1",
        "product_name": "Mechanical keyboard",
        "product_url": "https://www.amazon.com/dp/B000KB0001",
        "seller_platform": "amazon",
        "quantity": 1,
        "origin_country": "US",
        "destination_country": "NP",
        "price": 120.0,
        "weight": 1.2,
        "warehouse": "us_warehouse",
    },
    {
        "quote_line_id": "ql-2",
        "product_name": "Wireless mouse",
        "product_url": "https://www.amazon.com/dp/B000MS0002",
        "seller_platform": "amazon",
        "quantity": 2,
        "origin_country": "US",
        "destination_country": "NP",
        "price": 40.0,
        "weight": 0.3,
        "warehouse": "us_warehouse",
    },
]


@pytest.fixture(scope="session")
def forwarding_bed():
    from forwarding.domain import forwarding

    bed = DomainFixture(forwarding)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(forwarding_bed):
    with forwarding_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    """Every test starts with fresh, accepting fake adapters."""
    from forwarding.agent import reset_agent
    from forwarding.carrier import reset_carrier
    from forwarding.notifier import reset_notifier
    from forwarding.refunds import reset_refunds

    reset_agent()
    reset_carrier()
    reset_notifier()
    reset_refunds()
    yield
    reset_agent()
    reset_carrier()
    reset_notifier()
    reset_refunds()


@pytest.fixture()
def agent():
    from forwarding.agent import get_agent

    return get_agent()


@pytest.fixture()
def carrier():
    from forwarding.carrier import get_carrier

    return get_carrier()


@pytest.fixture()
def notifier():
    from forwarding.notifier import get_notifier

    return get_notifier()


@pytest.fixture()
def refunds():
    from forwarding.refunds import get_refunds

    return get_refunds()


# ---------------------------------------------------------------------------
# Workflow helpers
# ---------------------------------------------------------------------------
def snapshot_payload(lines=None, quote_id="Q-1001", total=None, currency="USD") -> str:
    lines = [dict(line) for line in (lines or _DEFAULT_LINES)]
    payload = {"quote_id": quote_id, "lines": lines, "currency": currency}
    if total is not None:
        payload["total"] = total
    return json.dumps(payload)


@pytest.fixture()
def quote_snapshot():
    """Builder for quote snapshot payloads."""
    return snapshot_payload


@pytest.fixture()
def default_lines():
    return [dict(line) for line in _DEFAULT_LINES]


@pytest.fixture()
def create_order():
    """Create an order through CreateOrder and return its id."""
    from forwarding.order.creation import CreateOrder

    def _create(lines=None, quote_id="Q-1001", customer_id="cust-001", **kwargs):
        kwargs.setdefault("payment_id", "pay-001")
        kwargs.setdefault("payment_method", "stripe")
        return current_domain.process(
            CreateOrder(customer_id=customer_id, quote_snapshot=snapshot_payload(lines, quote_id), **kwargs),
            asynchronous=False,
        )

    return _create


@pytest.fixture()
def order_items():
    """Current items of an order, oldest first."""
    from forwarding.item.item import OrderItem

    def _items(order_id):
        return current_domain.repository_for(OrderItem).for_order(order_id)

    return _items


@pytest.fixture()
def running_task():
    """The in-flight task of the given type for an item."""
    from forwarding.automation.task import AutomationTask, TaskStatus

    def _task(item_id, task_type="order_placement"):
        tasks = current_domain.repository_for(AutomationTask).for_item(item_id)
        return next(t for t in tasks if t.task_type == task_type and t.status == TaskStatus.RUNNING.value)

    return _task


@pytest.fixture()
def place_item(running_task):
    """Report a successful placement for an item awaiting one."""
    from forwarding.automation.runner import ReportTaskResult

    def _place(item_id, seller_order_id=None):
        task = running_task(item_id, "order_placement")
        current_domain.process(
            ReportTaskResult(
                task_id=str(task.id),
                success=True,
                attempt=task.attempt,
                result_json=json.dumps({"seller_order_id": seller_order_id or f"SO-{item_id[:8]}"}),
                data_quality_score=0.95,
            ),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def ready_item(place_item):
    """Drive an item from placement to quality_check_passed."""
    from forwarding.item.arrival import RecordWarehouseArrival
    from forwarding.item.quality import RecordQualityCheck

    def _ready(item_id, warehouse="us_warehouse", place=True):
        if place:
            place_item(item_id)
        current_domain.process(
            RecordWarehouseArrival(item_id=item_id, warehouse=warehouse, arrived_at=datetime.now(UTC)),
            asynchronous=False,
        )
        current_domain.process(
            RecordQualityCheck(item_id=item_id, passed=True, inspector="Priya"),
            asynchronous=False,
        )

    return _ready
