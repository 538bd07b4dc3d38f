"""Tests for the weekly simulation loop"""

from dataclasses import replace

import pandas as pd
import pytest

from vaxalloc.data import inputs_from_config, load_config, scenarios_from_config
from vaxalloc.data.loaders import growth_from_config
from vaxalloc.errors import ConfigurationError, UnrecoverableOverflowError
from vaxalloc.scenarios import run_scenarios
from vaxalloc.sim import Simulator, run_simulation
from vaxalloc.types import PopulationState


@pytest.fixture
def base_inputs(base_config_path):
    cfg = load_config(str(base_config_path))
    return inputs_from_config(cfg, base_dir=base_config_path.parent)


def test_first_week_capacity_capped(make_inputs):
    """100 people, capacity 30, 1000 doses of A -> 30 first doses, 70 unprotected"""
    sim = Simulator(make_inputs())
    state, plan = sim.step(sim.initial_state())

    assert plan.first_a == 30.0
    assert plan.seconds == 0.0
    assert state.population.state.partially_protected == 30.0
    assert state.population.state.unprotected == 70.0
    assert state.schedule.due("a", 4) == 30.0
    assert state.stock["a"] == 970.0


def test_second_doses_follow_interval(make_inputs):
    """Week 1 first doses come due in week 4 and complete protection"""
    out = Simulator(make_inputs(total=1000.0, capacity_two=30.0)).run()

    week4 = out.set_index("week").loc[4]
    assert week4["second_a"] == 30.0
    assert week4["first_a"] == 0.0
    assert week4["fully_protected"] == 30.0


def test_population_correction(make_inputs):
    """Overshoot is peeled from single doses then first doses of A"""
    inputs = make_inputs(
        total=50.0,
        stock={"a": 1000.0, "s": 10.0},
        capacity_two=100.0,
        capacity_single=10.0,
    )
    out = Simulator(inputs).run().set_index("week")

    w1 = out.loc[1]
    assert bool(w1["corrected"])
    assert w1["single"] == 0.0
    assert w1["first_a"] == 50.0
    assert w1["unprotected"] == 0.0
    assert w1["partially_protected"] == 50.0

    # No one left to start: only the scheduled seconds in week 4
    w4 = out.loc[4]
    assert w4["case"] == "none_unprotected"
    assert w4["second_a"] == 50.0
    assert w4["fully_protected"] == 50.0
    assert (out["unprotected"] >= 0).all()


def test_unrecoverable_overflow(make_inputs):
    """A schedule larger than the population cannot be corrected"""
    inputs = make_inputs(total=10.0, schedule={"a": {3: 30.0}}, capacity_two=5.0)
    with pytest.raises(UnrecoverableOverflowError):
        Simulator(inputs).run()


def test_backlog_keeps_people_partially_protected(make_inputs):
    """Capacity below due seconds carries the remainder forward"""
    population = PopulationState(unprotected=60.0, partially_protected=40.0, fully_protected=0.0)
    inputs = make_inputs(
        population=population,
        schedule={"a": {1: 40.0}},
        capacity_two=10.0,
        horizon=3,
    )
    out = Simulator(inputs).run().set_index("week")

    assert out.loc[1, "case"] == "seconds_capped"
    assert out.loc[1, "second_a"] == 10.0
    assert out.loc[1, "partially_protected"] == 30.0
    assert out.loc[2, "second_a"] == 10.0
    assert out.loc[3, "fully_protected"] == 30.0


def test_outcome_columns(make_inputs):
    out = run_simulation(make_inputs())

    assert len(out) == 6
    for col in ["date", "administered", "capacity", "utilization", "stock_total", "stock_a",
                "stock_b", "stock_s", "deliveries", "cumulative_administered", "fully_protected"]:
        assert col in out.columns
    assert out["date"].iloc[1] - out["date"].iloc[0] == pd.Timedelta(weeks=1)
    assert out["utilization"].iloc[0] == pytest.approx(1.0)


def test_zero_capacity_utilization(make_inputs):
    out = run_simulation(make_inputs(capacity_two=0.0))
    assert (out["utilization"] == 0.0).all()
    assert (out["administered"] == 0.0).all()


class TestValidation:

    def test_population_must_sum_to_total(self, make_inputs):
        bad = PopulationState(unprotected=90.0, partially_protected=0.0, fully_protected=0.0)
        with pytest.raises(ConfigurationError, match="sum"):
            Simulator(make_inputs(population=bad))

    def test_horizon_must_be_positive(self, make_inputs):
        inputs = make_inputs()
        with pytest.raises(ConfigurationError, match="horizon"):
            Simulator(replace(inputs, horizon_weeks=0))

    def test_negative_deliveries(self, make_inputs, products):
        weeks = pd.Index(range(1, 7), name="week")
        deliveries = pd.DataFrame(0.0, index=weeks, columns=list(products.names))
        deliveries.loc[2, "a"] = -5.0
        with pytest.raises(ConfigurationError, match="Deliveries"):
            Simulator(make_inputs(deliveries=deliveries))

    def test_negative_capacity(self, make_inputs):
        with pytest.raises(ConfigurationError, match="capacity"):
            Simulator(make_inputs(capacity_two=-1.0))

    def test_unknown_supplier(self, make_inputs):
        with pytest.raises(ConfigurationError):
            make_inputs().with_suppliers(["a", "zzz"])


class TestInvariants:
    """Properties that hold every week on the base configuration and its scenario grid."""

    def test_population_conserved(self, base_inputs):
        out = run_simulation(base_inputs)
        total = out["unprotected"] + out["partially_protected"] + out["fully_protected"]
        assert total.to_numpy() == pytest.approx([base_inputs.total_population] * len(out))

    def test_fully_protected_non_decreasing(self, base_inputs):
        out = run_simulation(base_inputs)
        assert out["fully_protected"].is_monotonic_increasing

    def test_stock_never_negative(self, base_inputs):
        out = run_simulation(base_inputs)
        stock_cols = [c for c in out.columns if c.startswith("stock_")]
        assert (out[stock_cols] >= -1e-6).all().all()

    def test_seconds_within_obligation(self, base_inputs):
        sim = Simulator(base_inputs)
        state = sim.initial_state()
        a, b = base_inputs.products.a.name, base_inputs.products.b.name
        for _ in range(base_inputs.horizon_weeks):
            due_a = state.schedule.due(a)
            due_b = state.schedule.due(b)
            state, plan = sim.step(state)
            assert plan.second_a <= due_a + 1e-9
            assert plan.second_b <= due_b + 1e-9

    def test_idempotent(self, base_inputs):
        first = run_simulation(base_inputs)
        second = run_simulation(base_inputs)
        pd.testing.assert_frame_equal(first, second, check_exact=True)
        assert first.to_csv(index=False) == second.to_csv(index=False)

    def test_every_scenario_in_grid(self, base_config_path, base_inputs):
        """Conservation, monotone protection and non-negative stock for every capacity × supplier run"""
        cfg = load_config(str(base_config_path))
        grid = scenarios_from_config(cfg)
        growth = growth_from_config(cfg["capacity"]["two_dose"], base_config_path.parent)

        results = run_scenarios(base_inputs, growth, grid["capacity"], grid["suppliers"])

        assert len(results) == len(grid["capacity"]) * len(grid["suppliers"])
        for key, out in results.items():
            total = out["unprotected"] + out["partially_protected"] + out["fully_protected"]
            assert total.to_numpy() == pytest.approx([base_inputs.total_population] * len(out)), key
            assert out["fully_protected"].is_monotonic_increasing, key
            stock_cols = [c for c in out.columns if c.startswith("stock_")]
            assert (out[stock_cols] >= -1e-6).all().all(), key

    def test_supplier_subset_delivers_less(self, base_inputs):
        full = run_simulation(base_inputs)
        pfizer_only = run_simulation(base_inputs, suppliers=["pfizer"])
        assert pfizer_only["deliveries"].sum() < full["deliveries"].sum()
        assert (pfizer_only["single"] == 0.0).all()
