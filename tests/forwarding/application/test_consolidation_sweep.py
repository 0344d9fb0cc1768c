"""Application tests for the consolidation sweep and the combined sweep runner."""

from datetime import UTC, datetime, timedelta

import pytest
from forwarding.consolidation.planning import PlanConsolidation
from forwarding.shipment.shipment import Shipment, ShipmentKind
from forwarding.sweeps import SWEEPS, run_sweeps
from protean import current_domain
from protean.exceptions import ValidationError

_CABLE = {
    "quote_line_id": "ql-3",
    "product_name": "USB-C cable",
    "seller_platform": "amazon",
    "quantity": 1,
    "origin_country": "US",
    "destination_country": "NP",
    "price": 12.0,
    "weight": 0.1,
    "warehouse": "us_warehouse",
}


def _sweep(as_of=None, order_id=None):
    return current_domain.process(
        PlanConsolidation(as_of=as_of or datetime.now(UTC), order_id=order_id),
        asynchronous=False,
    )


def _shipments(order_id):
    return current_domain.repository_for(Shipment).for_order(order_id)


class TestWaitForAll:
    def test_holds_ready_item_while_sibling_pending(self, create_order, order_items, ready_item):
        order_id = create_order()
        keyboard = str(order_items(order_id)[0].id)
        ready_item(keyboard)

        assert _sweep() == 0
        assert order_items(order_id)[0].consolidation_group_id is None

    def test_deadline_releases_ready_items(self, create_order, order_items, ready_item):
        order_id = create_order()
        keyboard = str(order_items(order_id)[0].id)
        ready_item(keyboard)

        assert _sweep(datetime.now(UTC) + timedelta(days=15)) == 1
        shipment = _shipments(order_id)[0]
        assert shipment.item_ids == [keyboard]
        assert shipment.shipment_kind == ShipmentKind.PARTIAL.value

    def test_straggler_ships_alone_after_deadline(self, create_order, order_items, ready_item):
        order_id = create_order(max_consolidation_wait_days=3)
        keyboard, mouse = (str(item.id) for item in order_items(order_id))
        ready_item(keyboard)
        _sweep(datetime.now(UTC) + timedelta(days=4))

        ready_item(mouse)
        assert _sweep(datetime.now(UTC) + timedelta(days=5)) == 1
        shipments = _shipments(order_id)
        assert [s.item_ids for s in shipments] == [[keyboard], [mouse]]
        assert shipments[1].shipment_kind == ShipmentKind.DIRECT.value

    def test_sweep_covers_every_order(self, create_order, order_items, ready_item):
        first = create_order(quote_id="Q-A")
        second = create_order(quote_id="Q-B")
        for order_id in (first, second):
            for item in order_items(order_id):
                ready_item(str(item.id))
        assert _sweep() == 2


class TestShipAsReady:
    def test_each_ready_item_ships_immediately(self, create_order, order_items, ready_item):
        order_id = create_order(consolidation_preference="ship_as_ready")
        keyboard = str(order_items(order_id)[0].id)
        ready_item(keyboard)

        assert _sweep(order_id=order_id) == 1
        assert _shipments(order_id)[0].shipment_kind == ShipmentKind.PARTIAL.value


class TestPartialGroups:
    def test_group_ships_once_large_enough(self, create_order, order_items, ready_item, default_lines):
        order_id = create_order(lines=default_lines + [dict(_CABLE)], consolidation_preference="partial_groups")
        keyboard, mouse, cable = (str(item.id) for item in order_items(order_id))

        ready_item(keyboard)
        assert _sweep() == 0

        ready_item(mouse)
        assert _sweep() == 1
        shipment = _shipments(order_id)[0]
        assert sorted(shipment.item_ids) == sorted([keyboard, mouse])
        assert shipment.shipment_kind == ShipmentKind.PARTIAL.value


class TestWarehouses:
    def test_one_shipment_per_warehouse(self, create_order, order_items, ready_item, default_lines):
        default_lines[1]["warehouse"] = "china_warehouse"
        order_id = create_order(lines=default_lines)
        keyboard, mouse = (str(item.id) for item in order_items(order_id))
        ready_item(keyboard)
        ready_item(mouse, warehouse="china_warehouse")

        assert _sweep() == 2
        by_warehouse = {s.origin_warehouse: s.item_ids for s in _shipments(order_id)}
        assert by_warehouse == {"us_warehouse": [keyboard], "china_warehouse": [mouse]}


class TestRunSweeps:
    def test_runs_every_sweep_in_order(self):
        results = run_sweeps(datetime.now(UTC))
        assert list(results) == list(SWEEPS)
        assert all(count == 0 for count in results.values())

    def test_selected_sweeps_only(self, create_order, order_items, ready_item):
        order_id = create_order()
        ready_item(str(order_items(order_id)[0].id))
        results = run_sweeps(datetime.now(UTC) + timedelta(days=15), names=["consolidation"])
        assert results == {"consolidation": 1}

    def test_unknown_sweep(self):
        with pytest.raises(ValidationError):
            run_sweeps(names=["retries", "reminders"])


class TestSweeperLoop:
    def test_failed_pass_does_not_stop_the_loop(self, monkeypatch):
        import sweeper

        calls = []

        def flaky_run_once(as_of=None, names=None):
            calls.append(names)
            if len(calls) == 1:
                raise RuntimeError("database unavailable")
            return {}

        monkeypatch.setattr(sweeper, "run_once", flaky_run_once)
        sleeps = []
        sweeper.run_forever(60, ["revisions"], sleep=sleeps.append, iterations=3)
        assert calls == [["revisions"]] * 3
        assert sleeps == [60, 60, 60]

    @pytest.mark.parametrize(
        "argv",
        [
            ["--as-of", "2026-01-15T00:00:00+00:00"],
            ["--as-of", "2026-01-15T00:00:00+00:00", "--interval", "60"],
            ["--once", "--interval", "60"],
        ],
    )
    def test_conflicting_options_rejected(self, argv):
        import sweeper

        with pytest.raises(SystemExit) as exc_info:
            sweeper.main(argv)
        assert exc_info.value.code == 2
