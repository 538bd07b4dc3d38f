"""
Week-indexed ledgers advanced by the weekly simulator.

Every ``advance``/``apply`` returns a new ledger and leaves the receiver
untouched, so a week can be recomputed from the same starting state when the
population limiter replaces that week's plan.
"""

from typing import Dict, Mapping, Optional

import numpy as np

from ..errors import ConfigurationError
from ..types import AdministrationPlan, PopulationState, ProductSet


class ScheduleLedger:
    """
    People due a second dose, per two-dose product and week.

    Storage is a pre-sized array per product indexed directly by week
    (slot 0 unused) and long enough to hold ``horizon + interval``. The
    ledger tracks its current week; slot ``week + interval`` is written only
    by ``advance(plan, week)``, after all earlier weeks have been advanced.
    """

    def __init__(
        self,
        products: ProductSet,
        horizon_weeks: int,
        initial: Optional[Mapping[str, Mapping[int, float]]] = None,
        week: int = 1,
    ):
        self.products = products
        self.horizon_weeks = horizon_weeks
        self.week = week
        size = horizon_weeks + products.max_interval + 2
        self._due: Dict[str, np.ndarray] = {
            p.name: np.zeros(size, dtype=float) for p in products.two_dose
        }

        for name, entries in (initial or {}).items():
            if name not in self._due:
                raise ConfigurationError(f"Initial schedule names unknown two-dose product {name!r}")
            interval = self._product(name).interval_weeks
            for w, count in entries.items():
                w = int(w)
                if not (1 <= w <= interval):
                    raise ConfigurationError(
                        f"Initial schedule for {name!r} covers weeks 1..{interval} (got week {w})"
                    )
                if count < 0:
                    raise ConfigurationError(f"Initial schedule for {name!r} week {w} is negative ({count})")
                self._due[name][w] = float(count)

    def _product(self, name: str):
        for p in self.products.two_dose:
            if p.name == name:
                return p
        raise KeyError(name)

    def copy(self) -> "ScheduleLedger":
        new = ScheduleLedger.__new__(ScheduleLedger)
        new.products = self.products
        new.horizon_weeks = self.horizon_weeks
        new.week = self.week
        new._due = {name: arr.copy() for name, arr in self._due.items()}
        return new

    def due(self, name: str, week: Optional[int] = None) -> float:
        """Second doses due for ``name`` in ``week`` (defaults to the current week)."""
        w = self.week if week is None else week
        return float(self._due[name][w])

    def pending_from(self, name: str, week: Optional[int] = None) -> float:
        """All obligations for ``name`` due in ``week`` or later."""
        w = self.week if week is None else week
        return float(self._due[name][w:].sum())

    def pending_after(self, name: str, week: Optional[int] = None) -> float:
        """Obligations due strictly after ``week``: people waiting on a second dose."""
        w = self.week if week is None else week
        return float(self._due[name][w + 1:].sum())

    def total_pending_after(self, week: Optional[int] = None) -> float:
        return sum(self.pending_after(p.name, week) for p in self.products.two_dose)

    def advance(self, plan: AdministrationPlan, week: int, carry_backlog: bool = True) -> "ScheduleLedger":
        """
        Roll the ledger from ``week`` to ``week + 1``.

        Existing future entries are kept. This week's first doses become
        obligations ``interval`` weeks out. With ``carry_backlog`` any
        obligation left unserved this week is moved to next week.

        Args:
            plan: The committed plan for ``week``
            week: Week being closed; must equal the ledger's current week
            carry_backlog: Move unserved second doses into ``week + 1``

        Returns:
            New ledger positioned at ``week + 1``
        """
        if week != self.week:
            raise ValueError(f"Ledger is at week {self.week}, cannot advance week {week}")

        new = self.copy()
        for product, first, second in (
            (self.products.a, plan.first_a, plan.second_a),
            (self.products.b, plan.first_b, plan.second_b),
        ):
            arr = new._due[product.name]
            unserved = arr[week] - second
            if carry_backlog and unserved > 0:
                arr[week + 1] += unserved
            arr[week + product.interval_weeks] += first
        new.week = week + 1
        return new


class StockLedger:
    """On-hand doses per product."""

    def __init__(self, stock: Mapping[str, float]):
        self.stock: Dict[str, float] = {k: float(v) for k, v in stock.items()}

    def __getitem__(self, name: str) -> float:
        return self.stock.get(name, 0.0)

    @property
    def total(self) -> float:
        return float(sum(self.stock.values()))

    def available(self, name: str, delivered: float) -> float:
        return self[name] + delivered

    def apply(
        self,
        plan: AdministrationPlan,
        products: ProductSet,
        deliveries: Mapping[str, float],
    ) -> "StockLedger":
        """Subtract administered doses and add this week's deliveries."""
        used = {
            products.a.name: plan.first_a + plan.second_a,
            products.b.name: plan.first_b + plan.second_b,
            products.single.name: plan.single,
        }
        names = set(self.stock) | set(used) | set(deliveries)
        return StockLedger({
            n: self[n] - used.get(n, 0.0) + float(deliveries.get(n, 0.0))
            for n in sorted(names)
        })


class PopulationTracker:
    """
    Unprotected / partially / fully protected counts.

    ``partially_protected`` is re-derived every week from the schedule ledger's
    pending obligations rather than kept as a running counter.
    """

    def __init__(self, total_population: float, state: PopulationState):
        self.total_population = float(total_population)
        self.state = state

    @property
    def unprotected(self) -> float:
        return self.state.unprotected

    def apply(self, next_schedule: ScheduleLedger, plan: AdministrationPlan) -> "PopulationTracker":
        partial = next_schedule.total_pending_after(next_schedule.week - 1)
        full = self.state.fully_protected + plan.second_a + plan.second_b + plan.single
        unprotected = self.total_population - full - partial
        return PopulationTracker(
            self.total_population,
            PopulationState(
                unprotected=unprotected,
                partially_protected=partial,
                fully_protected=full,
            ),
        )
