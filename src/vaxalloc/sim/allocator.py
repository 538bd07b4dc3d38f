"""
Weekly allocation policy and population limiter.

The allocation policy is an ordered decision table: each row is a guard and
a rule, evaluated top to bottom, and the first guard that holds produces the
week's two-dose plan. Single doses are allocated independently of the table.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence, Tuple

from ..errors import UnrecoverableOverflowError
from ..types import AdministrationPlan, AllocationCase, ProductSet

logger = logging.getLogger(__name__)

# Absorbs float noise from proportional splits
_EPS = 1e-9


def safe_split(total: float, weights: Sequence[float]) -> Tuple[float, ...]:
    """
    Split ``total`` in proportion to ``weights``.

    A zero weight sum yields zeros instead of dividing by zero.
    """
    denom = float(sum(weights))
    if denom == 0:
        return tuple(0.0 for _ in weights)
    return tuple(total * w / denom for w in weights)


def max_first_doses(stock: float, delivered: float, pending_seconds: float) -> float:
    """
    First doses that can be started while keeping stock for every promised
    second dose, assuming each new first dose needs one second dose later.

    max_first = floor((stock + delivered - pending_seconds) / 2), never below 0
    """
    return float(max(0, math.floor(0.5 * (stock + delivered - pending_seconds))))


@dataclass(frozen=True)
class WeekView:
    """Quantities the decision table reads for one week."""
    capacity: float
    due_a: float
    due_b: float
    max_first_a: float
    max_first_b: float
    unprotected: float

    @property
    def due(self) -> float:
        return self.due_a + self.due_b

    @property
    def max_first(self) -> float:
        return self.max_first_a + self.max_first_b


# ---- Decision table rows ----

def _seconds_capped(v: WeekView) -> bool:
    return v.capacity <= v.due


def _plan_seconds_capped(v: WeekView) -> AdministrationPlan:
    second_a, second_b = safe_split(v.capacity, (v.due_a, v.due_b))
    return AdministrationPlan(second_a=second_a, second_b=second_b,
                              case=AllocationCase.SECONDS_CAPPED)


def _none_unprotected(v: WeekView) -> bool:
    return v.unprotected == 0


def _plan_none_unprotected(v: WeekView) -> AdministrationPlan:
    return AdministrationPlan(second_a=v.due_a, second_b=v.due_b,
                              case=AllocationCase.NONE_UNPROTECTED)


def _demand_capped(v: WeekView) -> bool:
    return v.capacity <= v.due + v.max_first


def _plan_demand_capped(v: WeekView) -> AdministrationPlan:
    first_a, first_b = safe_split(v.capacity - v.due, (v.max_first_a, v.max_first_b))
    return AdministrationPlan(first_a=first_a, second_a=v.due_a,
                              first_b=first_b, second_b=v.due_b,
                              case=AllocationCase.DEMAND_CAPPED)


def _always(v: WeekView) -> bool:
    return True


def _plan_uncapped(v: WeekView) -> AdministrationPlan:
    return AdministrationPlan(first_a=v.max_first_a, second_a=v.due_a,
                              first_b=v.max_first_b, second_b=v.due_b,
                              case=AllocationCase.UNCAPPED)


DECISION_TABLE: Tuple[Tuple[AllocationCase, Callable[[WeekView], bool],
                            Callable[[WeekView], AdministrationPlan]], ...] = (
    (AllocationCase.SECONDS_CAPPED, _seconds_capped, _plan_seconds_capped),
    (AllocationCase.NONE_UNPROTECTED, _none_unprotected, _plan_none_unprotected),
    (AllocationCase.DEMAND_CAPPED, _demand_capped, _plan_demand_capped),
    (AllocationCase.UNCAPPED, _always, _plan_uncapped),
)


def decide(view: WeekView) -> AdministrationPlan:
    """Return the two-dose plan from the first matching table row."""
    for case, guard, rule in DECISION_TABLE:
        if guard(view):
            return rule(view)
    raise AssertionError("decision table has no fallback row")


def allocate(
    products: ProductSet,
    stock: Mapping[str, float],
    deliveries: Mapping[str, float],
    capacity_two_dose: float,
    capacity_single_dose: float,
    second_dose_due: Mapping[str, float],
    pending_seconds: Mapping[str, float],
    unprotected: float,
) -> AdministrationPlan:
    """
    Decide one week's administration.

    Args:
        products: Product line-up
        stock: On-hand doses per product at the start of the week
        deliveries: Doses arriving this week per product
        capacity_two_dose: Combined ceiling for both two-dose products
        capacity_single_dose: Ceiling for the single-dose product
        second_dose_due: Second doses scheduled this week per two-dose product
        pending_seconds: All unfulfilled obligations from this week onward
        unprotected: People with no dose yet

    Returns:
        AdministrationPlan tagged with the decision-table case that produced it
    """
    a, b, single = products.a.name, products.b.name, products.single.name

    view = WeekView(
        capacity=float(capacity_two_dose),
        due_a=float(second_dose_due.get(a, 0.0)),
        due_b=float(second_dose_due.get(b, 0.0)),
        max_first_a=max_first_doses(stock.get(a, 0.0), deliveries.get(a, 0.0), pending_seconds.get(a, 0.0)),
        max_first_b=max_first_doses(stock.get(b, 0.0), deliveries.get(b, 0.0), pending_seconds.get(b, 0.0)),
        unprotected=float(unprotected),
    )
    plan = decide(view)

    single_available = stock.get(single, 0.0) + deliveries.get(single, 0.0)
    return plan.with_changes(single=float(max(0.0, min(capacity_single_dose, single_available))))


def limit_population(plan: AdministrationPlan, unprotected_next: float, week: int) -> AdministrationPlan:
    """
    Peel back new protections so the unprotected count lands on zero.

    Order: single doses, then first doses of product A, then product B.
    Second doses are never touched.

    Raises:
        UnrecoverableOverflowError: if removing every single and first dose
            still leaves part of the deficit
    """
    deficit = abs(unprotected_next)

    if plan.single >= deficit:
        corrected = plan.with_changes(single=plan.single - deficit, corrected=True)
    elif plan.single + plan.first_a >= deficit:
        corrected = plan.with_changes(
            single=0.0,
            first_a=plan.first_a - (deficit - plan.single),
            corrected=True,
        )
    else:
        residual = deficit - plan.single - plan.first_a
        if residual > plan.first_b + _EPS:
            raise UnrecoverableOverflowError(week, residual - plan.first_b)
        corrected = plan.with_changes(
            single=0.0,
            first_a=0.0,
            first_b=max(0.0, plan.first_b - residual),
            corrected=True,
        )

    logger.info(
        "Week %d: population overshoot of %g, plan corrected (single %g->%g, first_a %g->%g, first_b %g->%g)",
        week, deficit, plan.single, corrected.single, plan.first_a, corrected.first_a,
        plan.first_b, corrected.first_b,
    )
    return corrected
