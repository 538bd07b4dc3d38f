"""
Scenario grid: capacity ceilings × supplier sets.

Runs are independent. Each one gets its own deep copy of the inputs and
builds fresh ledgers, so they can execute in parallel.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from joblib import Parallel, delayed

from .capacity import CapacityGrowth, curve_from_growth
from .sim.core import SimulationInputs, run_simulation

logger = logging.getLogger(__name__)

ScenarioKey = Tuple[str, str]


def with_capacity_ceiling(
    inputs: SimulationInputs,
    growth: CapacityGrowth,
    ceiling: float
) -> SimulationInputs:
    """Copy of ``inputs`` with the two-dose capacity curve rebuilt for ``ceiling``."""
    curve = curve_from_growth(growth, ceiling, inputs.horizon_weeks)
    return replace(inputs, capacity_two_dose=curve)


def _run_one(key: ScenarioKey, inputs: SimulationInputs, suppliers: List[str]) -> Tuple[ScenarioKey, pd.DataFrame]:
    logger.debug("Running scenario capacity=%s suppliers=%s", *key)
    return key, run_simulation(inputs, suppliers)


def run_scenarios(
    inputs: SimulationInputs,
    growth: CapacityGrowth,
    capacity_scenarios: Mapping[str, float],
    supplier_sets: Mapping[str, Iterable[str]],
    n_jobs: int = 1,
    backend: str = "loky"
) -> Dict[ScenarioKey, pd.DataFrame]:
    """
    Run every (capacity scenario, supplier set) combination.

    Args:
        inputs: Base inputs; never mutated
        growth: Two-dose capacity growth shared by all capacity scenarios
        capacity_scenarios: name -> two-dose capacity ceiling
        supplier_sets: name -> products whose deliveries are honored
        n_jobs: Parallel workers (1 = sequential)
        backend: joblib backend

    Returns:
        Outcomes table per (capacity_name, supplier_name)
    """
    tasks = []
    for cap_name, ceiling in capacity_scenarios.items():
        scenario_inputs = with_capacity_ceiling(inputs, growth, ceiling)
        for sup_name, suppliers in supplier_sets.items():
            tasks.append(((cap_name, sup_name), scenario_inputs, list(suppliers)))

    logger.info("Running %d scenarios with n_jobs=%d", len(tasks), n_jobs)
    results = Parallel(n_jobs=n_jobs, backend=backend, verbose=0)(
        delayed(_run_one)(key, scenario_inputs, suppliers)
        for key, scenario_inputs, suppliers in tasks
    )
    return dict(results)


def week_reaching(outcomes: pd.DataFrame, threshold: float) -> Optional[int]:
    """First week whose fully-protected count reaches ``threshold``, or None."""
    hit = outcomes.loc[outcomes["fully_protected"] >= threshold, "week"]
    return int(hit.iloc[0]) if len(hit) else None


def summarize(
    results: Mapping[ScenarioKey, pd.DataFrame],
    total_population: float,
    coverage_target: float = 0.7
) -> pd.DataFrame:
    """
    One row per scenario: final coverage, week the coverage target is hit,
    peak stock, mean utilization and number of corrected weeks.
    """
    rows = []
    for (cap_name, sup_name), df in results.items():
        last = df.iloc[-1]
        rows.append({
            "capacity_scenario": cap_name,
            "supplier_set": sup_name,
            "final_fully_protected": float(last["fully_protected"]),
            "final_coverage": float(last["fully_protected"]) / total_population if total_population else 0.0,
            "target_week": week_reaching(df, coverage_target * total_population),
            "peak_stock": float(df["stock_total"].max()),
            "mean_utilization": float(df["utilization"].mean()),
            "corrected_weeks": int(df["corrected"].sum()),
            "total_administered": float(last["cumulative_administered"]),
        })
    return pd.DataFrame(rows)
