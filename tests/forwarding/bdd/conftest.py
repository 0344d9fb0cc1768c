"""Shared BDD fixtures and step definitions for the forwarding domain."""

import pytest
from forwarding.item.item import OrderItem
from forwarding.item_exception.exception import ItemException
from forwarding.order.order import Order
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


@pytest.fixture()
def item_named():
    """Look up an order's item by a word of its product name."""

    def _find(order_id, product):
        for item in current_domain.repository_for(OrderItem).for_order(order_id):
            if product.lower() in item.product_name.lower():
                return item
        raise AssertionError(f"No {product} in order {order_id}")

    return _find


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a paid order for a keyboard and a mouse", target_fixture="order_id")
def paid_order(create_order):
    return create_order()


@given(
    parsers.cfparse('a paid order for a keyboard and a mouse consolidated "{preference}"'),
    target_fixture="order_id",
)
def paid_order_with_preference(create_order, preference):
    return create_order(consolidation_preference=preference)


@given(parsers.cfparse("the {product} has been placed with the seller"))
def placed(order_id, product, item_named, place_item):
    place_item(str(item_named(order_id, product).id))


@given(parsers.cfparse("the {product} has passed inspection"))
def inspected(order_id, product, item_named, ready_item):
    ready_item(str(item_named(order_id, product).id))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the {product} item is "{status}"'))
def item_status(order_id, product, item_named, status):
    assert item_named(order_id, product).status == status


@then(parsers.cfparse('the {product} has a pending "{exception_type}" exception'))
def pending_exception(order_id, product, item_named, exception_type):
    item = item_named(order_id, product)
    exceptions = current_domain.repository_for(ItemException).for_item(str(item.id))
    assert [(e.exception_type, e.resolution_status) for e in exceptions] == [(exception_type, "pending")]


@then(parsers.cfparse("the order total is {total:g}"))
def order_total(order_id, total):
    assert current_domain.repository_for(Order).get(order_id).current_order_total == total


@then(parsers.cfparse('the order status is "{status}"'))
def order_status(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).status == status


@then(parsers.cfparse('the action fails with "{error_type}"'))
def action_fails(error, error_type):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_type
