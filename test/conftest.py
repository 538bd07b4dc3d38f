"""Shared fixtures for simulator tests"""

from pathlib import Path

import pandas as pd
import pytest

from vaxalloc.sim import SimulationInputs
from vaxalloc.types import PopulationState, Product, ProductSet

BASE_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "base.yaml"


@pytest.fixture
def products():
    """Two two-dose products (3- and 4-week intervals) and one single-dose product"""
    return ProductSet(
        a=Product("a", interval_weeks=3),
        b=Product("b", interval_weeks=4),
        single=Product("s"),
    )


@pytest.fixture
def make_inputs(products):
    """Factory for small deterministic SimulationInputs"""
    def _make(
        total=100.0,
        horizon=6,
        stock=None,
        population=None,
        schedule=None,
        deliveries=None,
        capacity_two=30.0,
        capacity_single=0.0,
        carry_backlog=True,
    ):
        weeks = pd.Index(range(1, horizon + 1), name="week")
        if deliveries is None:
            deliveries = pd.DataFrame(0.0, index=weeks, columns=list(products.names))
        if population is None:
            population = PopulationState(unprotected=total, partially_protected=0.0, fully_protected=0.0)
        return SimulationInputs(
            products=products,
            horizon_weeks=horizon,
            total_population=total,
            initial_stock=stock if stock is not None else {"a": 1000.0},
            initial_population=population,
            deliveries=deliveries,
            capacity_two_dose=pd.Series(capacity_two, index=weeks),
            capacity_single_dose=pd.Series(capacity_single, index=weeks),
            initial_schedule=schedule or {},
            carry_backlog=carry_backlog,
        )
    return _make


@pytest.fixture
def base_config_path():
    return BASE_CONFIG
