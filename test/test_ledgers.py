"""Tests for schedule, stock and population ledgers"""

import pytest

from vaxalloc.errors import ConfigurationError
from vaxalloc.sim.ledgers import PopulationTracker, ScheduleLedger, StockLedger
from vaxalloc.types import AdministrationPlan, PopulationState


@pytest.fixture
def schedule(products):
    """Product a has 10/20/30 second doses due in weeks 1-3"""
    return ScheduleLedger(products, horizon_weeks=10, initial={"a": {1: 10, 2: 20, 3: 30}})


class TestScheduleLedger:

    def test_due_and_pending(self, schedule):
        assert schedule.due("a") == 10.0
        assert schedule.due("b") == 0.0
        assert schedule.pending_from("a") == 60.0
        assert schedule.pending_after("a") == 50.0

    def test_advance_books_first_doses_interval_out(self, schedule):
        plan = AdministrationPlan(first_a=5.0, second_a=10.0, first_b=7.0)
        nxt = schedule.advance(plan, week=1)

        assert nxt.week == 2
        assert nxt.due("a", 4) == 5.0
        assert nxt.due("b", 5) == 7.0
        assert nxt.due("a", 2) == 20.0
        assert nxt.due("a", 3) == 30.0

    def test_advance_leaves_original_untouched(self, schedule):
        schedule.advance(AdministrationPlan(first_a=5.0, second_a=10.0), week=1)
        assert schedule.week == 1
        assert schedule.due("a", 4) == 0.0

    def test_backlog_carried_to_next_week(self, schedule):
        """Unserved second doses roll into the following week."""
        nxt = schedule.advance(AdministrationPlan(second_a=4.0), week=1)
        assert nxt.due("a", 2) == 26.0

    def test_backlog_dropped(self, schedule):
        nxt = schedule.advance(AdministrationPlan(second_a=4.0), week=1, carry_backlog=False)
        assert nxt.due("a", 2) == 20.0

    def test_advance_out_of_order(self, schedule):
        with pytest.raises(ValueError, match="week"):
            schedule.advance(AdministrationPlan(), week=2)

    def test_initial_beyond_interval(self, products):
        with pytest.raises(ConfigurationError):
            ScheduleLedger(products, horizon_weeks=10, initial={"a": {4: 10}})

    def test_initial_unknown_product(self, products):
        with pytest.raises(ConfigurationError):
            ScheduleLedger(products, horizon_weeks=10, initial={"s": {1: 10}})

    def test_holds_entries_past_horizon(self, products):
        ledger = ScheduleLedger(products, horizon_weeks=2)
        nxt = ledger.advance(AdministrationPlan(first_b=3.0), week=1)
        nxt = nxt.advance(AdministrationPlan(first_b=4.0), week=2)
        assert nxt.due("b", 6) == 4.0
        assert nxt.pending_after("b") == 7.0


class TestStockLedger:

    def test_apply(self, products):
        stock = StockLedger({"a": 100, "b": 50, "s": 10})
        plan = AdministrationPlan(first_a=10, second_a=5, first_b=3, second_b=2, single=4)

        nxt = stock.apply(plan, products, {"a": 20, "s": 5})

        assert nxt["a"] == 105.0
        assert nxt["b"] == 45.0
        assert nxt["s"] == 11.0
        assert nxt.total == 161.0
        assert stock["a"] == 100.0

    def test_missing_product_reads_zero(self):
        assert StockLedger({"a": 1})["b"] == 0.0


class TestPopulationTracker:

    def test_partial_derived_from_schedule(self, products):
        schedule = ScheduleLedger(products, horizon_weeks=5)
        tracker = PopulationTracker(100, PopulationState(100, 0, 0))
        plan = AdministrationPlan(first_a=5, first_b=3, single=2)

        nxt = tracker.apply(schedule.advance(plan, week=1), plan)

        assert nxt.state.partially_protected == 8.0
        assert nxt.state.fully_protected == 2.0
        assert nxt.state.unprotected == 90.0
        assert nxt.state.total == 100.0

    def test_seconds_complete_protection(self, products, schedule):
        tracker = PopulationTracker(100, PopulationState(40, 60, 0))
        plan = AdministrationPlan(second_a=10)

        nxt = tracker.apply(schedule.advance(plan, week=1), plan)

        assert nxt.state.fully_protected == 10.0
        assert nxt.state.partially_protected == 50.0
        assert nxt.state.unprotected == 40.0
