"""Core weekly simulation loop for dose allocation"""

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from ..errors import ConfigurationError
from ..types import AdministrationPlan, PopulationState, ProductSet
from .allocator import allocate, limit_population
from .ledgers import PopulationTracker, ScheduleLedger, StockLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationInputs:
    """
    Everything one run needs. Treated as immutable; runs never mutate it.

    deliveries         : DataFrame indexed by week 1..N, one column per product
    capacity_two_dose  : Series indexed by week 1..N
    capacity_single_dose : Series indexed by week 1..N
    initial_schedule   : product -> {week -> second doses due}, weeks 1..interval
    """
    products: ProductSet
    horizon_weeks: int
    total_population: float
    initial_stock: Mapping[str, float]
    initial_population: PopulationState
    deliveries: pd.DataFrame
    capacity_two_dose: pd.Series
    capacity_single_dose: pd.Series
    initial_schedule: Mapping[str, Mapping[int, float]] = field(default_factory=dict)
    start_date: str = "2021-01-04"
    carry_backlog: bool = True

    def validate(self) -> None:
        """Raise ConfigurationError on malformed inputs."""
        if not isinstance(self.horizon_weeks, int) or self.horizon_weeks < 1:
            raise ConfigurationError(f"horizon_weeks must be a positive integer (got {self.horizon_weeks})")
        if self.total_population < 0:
            raise ConfigurationError(f"total_population must be >= 0 (got {self.total_population})")

        pop = self.initial_population
        for name in ("unprotected", "partially_protected", "fully_protected"):
            if getattr(pop, name) < 0:
                raise ConfigurationError(f"initial population {name} must be >= 0 (got {getattr(pop, name)})")
        if abs(pop.total - self.total_population) > 1e-6:
            raise ConfigurationError(
                f"Initial population segments sum to {pop.total:g}, expected total_population={self.total_population:g}"
            )

        for name, qty in self.initial_stock.items():
            if name not in self.products.names:
                raise ConfigurationError(f"Initial stock names unknown product {name!r}")
            if qty < 0:
                raise ConfigurationError(f"Initial stock for {name!r} must be >= 0 (got {qty})")

        weeks = range(1, self.horizon_weeks + 1)
        missing = [c for c in self.deliveries.columns if c not in self.products.names]
        if missing:
            raise ConfigurationError(f"Deliveries name unknown products {missing}")
        if (self.deliveries.reindex(weeks).fillna(0.0) < 0).any().any():
            raise ConfigurationError("Deliveries must be >= 0")

        for label, curve in (("capacity_two_dose", self.capacity_two_dose),
                             ("capacity_single_dose", self.capacity_single_dose)):
            aligned = curve.reindex(weeks)
            if aligned.isna().any():
                raise ConfigurationError(f"{label} must cover weeks 1..{self.horizon_weeks}")
            if (aligned < 0).any():
                raise ConfigurationError(f"{label} must be >= 0")

        # Raises on out-of-range or negative schedule entries
        ScheduleLedger(self.products, self.horizon_weeks, self.initial_schedule)

    def delivered(self, week: int) -> Dict[str, float]:
        if week in self.deliveries.index:
            row = self.deliveries.loc[week]
            return {name: float(row.get(name, 0.0)) for name in self.products.names}
        return {name: 0.0 for name in self.products.names}

    def with_suppliers(self, suppliers: Iterable[str]) -> "SimulationInputs":
        """Copy of these inputs with deliveries zeroed for products not in ``suppliers``."""
        keep = set(suppliers)
        unknown = keep - set(self.products.names)
        if unknown:
            raise ConfigurationError(f"Supplier set names unknown products {sorted(unknown)}")
        deliveries = self.deliveries.copy()
        for col in deliveries.columns:
            if col not in keep:
                deliveries[col] = 0.0
        return replace(self, deliveries=deliveries)


@dataclass
class SimulationState:
    """Ledger states at a week boundary."""
    week: int
    schedule: ScheduleLedger
    stock: StockLedger
    population: PopulationTracker


class Simulator:
    """
    Weekly dose-allocation simulator.

    Each week: allocate from the current ledgers, advance schedule, stock and
    population, and if the unprotected count went negative replace the plan
    with the limiter's correction and re-advance from the same starting state.
    """

    def __init__(self, inputs: SimulationInputs):
        inputs.validate()
        self.inputs = inputs
        self.products = inputs.products

    def initial_state(self) -> SimulationState:
        inp = self.inputs
        schedule = ScheduleLedger(self.products, inp.horizon_weeks, inp.initial_schedule)
        stock = StockLedger({name: inp.initial_stock.get(name, 0.0) for name in self.products.names})
        population = PopulationTracker(inp.total_population, inp.initial_population)

        pending = schedule.total_pending_after(0)
        if abs(pending - inp.initial_population.partially_protected) > 1e-6:
            logger.warning(
                "Initial schedule holds %g pending second doses but partially_protected=%g; "
                "the schedule wins from week 1 on", pending, inp.initial_population.partially_protected,
            )
        return SimulationState(week=1, schedule=schedule, stock=stock, population=population)

    def plan(self, state: SimulationState) -> AdministrationPlan:
        """Naive allocation for ``state.week``, before any population correction."""
        w = state.week
        delivered = self.inputs.delivered(w)
        names = [p.name for p in self.products.two_dose]
        return allocate(
            self.products,
            stock=state.stock.stock,
            deliveries=delivered,
            capacity_two_dose=float(self.inputs.capacity_two_dose.loc[w]),
            capacity_single_dose=float(self.inputs.capacity_single_dose.loc[w]),
            second_dose_due={n: state.schedule.due(n, w) for n in names},
            pending_seconds={n: state.schedule.pending_from(n, w) for n in names},
            unprotected=state.population.unprotected,
        )

    def apply(self, state: SimulationState, plan: AdministrationPlan) -> SimulationState:
        """Advance all ledgers by one week under ``plan``."""
        w = state.week
        schedule = state.schedule.advance(plan, w, carry_backlog=self.inputs.carry_backlog)
        stock = state.stock.apply(plan, self.products, self.inputs.delivered(w))
        population = state.population.apply(schedule, plan)
        return SimulationState(week=w + 1, schedule=schedule, stock=stock, population=population)

    def step(self, state: SimulationState) -> Tuple[SimulationState, AdministrationPlan]:
        """
        Execute one week of simulation.

        Returns:
            (next_state, committed_plan)
        """
        plan = self.plan(state)
        next_state = self.apply(state, plan)

        if next_state.population.unprotected < 0:
            plan = limit_population(plan, next_state.population.unprotected, state.week)
            next_state = self.apply(state, plan)

        for name, qty in next_state.stock.stock.items():
            if qty < 0:
                logger.warning("Week %d: stock for %s went negative (%g)", state.week, name, qty)
        return next_state, plan

    def run(self) -> pd.DataFrame:
        """
        Run the full horizon.

        Returns:
            Outcomes table, one row per week
        """
        state = self.initial_state()
        rows: List[dict] = []
        cumulative = 0.0
        start = pd.Timestamp(self.inputs.start_date)

        for week in range(1, self.inputs.horizon_weeks + 1):
            next_state, plan = self.step(state)
            cumulative += plan.total
            rows.append(self._row(week, start, plan, next_state, cumulative))
            state = next_state

        return pd.DataFrame(rows)

    def _row(self, week: int, start: pd.Timestamp, plan: AdministrationPlan,
             state: SimulationState, cumulative: float) -> dict:
        inp = self.inputs
        capacity = float(inp.capacity_two_dose.loc[week] + inp.capacity_single_dose.loc[week])
        pop = state.population.state
        row = {
            "week": week,
            "date": start + pd.Timedelta(weeks=week - 1),
            "administered": plan.total,
            "capacity": capacity,
            "utilization": plan.total / capacity if capacity > 0 else 0.0,
            "stock_total": state.stock.total,
        }
        for name in self.products.names:
            row[f"stock_{name}"] = state.stock[name]
        row.update({
            "deliveries": float(sum(inp.delivered(week).values())),
            "cumulative_administered": cumulative,
            "fully_protected": pop.fully_protected,
            "partially_protected": pop.partially_protected,
            "unprotected": pop.unprotected,
            "first_a": plan.first_a,
            "second_a": plan.second_a,
            "first_b": plan.first_b,
            "second_b": plan.second_b,
            "single": plan.single,
            "case": plan.case.value,
            "corrected": plan.corrected,
        })
        return row


def run_simulation(inputs: SimulationInputs, suppliers: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Run one isolated simulation.

    The inputs are deep-copied first so concurrent runs never share mutable state.
    """
    isolated = copy.deepcopy(inputs)
    if suppliers is not None:
        isolated = isolated.with_suppliers(suppliers)
    return Simulator(isolated).run()
