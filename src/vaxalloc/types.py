"""Core value types shared by the allocation engine"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class Product:
    """
    A supply source.

    name           : identifier used in configs and output columns
    interval_weeks : weeks between first and second dose (0 for single-dose products)
    """
    name: str
    interval_weeks: int = 0

    @property
    def two_dose(self) -> bool:
        return self.interval_weeks > 0


@dataclass(frozen=True)
class ProductSet:
    """
    The fixed product line-up: two two-dose products and one single-dose product.

    Product ``a`` is peeled back before product ``b`` when the population
    limiter has to claw back first doses.
    """
    a: Product
    b: Product
    single: Product

    def __post_init__(self):
        for p in (self.a, self.b):
            if not p.two_dose:
                raise ConfigurationError(f"Product {p.name!r} must have interval_weeks >= 1")
        if self.single.two_dose:
            raise ConfigurationError(f"Product {self.single.name!r} must be single-dose (interval_weeks=0)")
        names = self.names
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Product names must be unique (got {names})")

    @property
    def names(self) -> Tuple[str, str, str]:
        return (self.a.name, self.b.name, self.single.name)

    @property
    def two_dose(self) -> Tuple[Product, Product]:
        return (self.a, self.b)

    @property
    def max_interval(self) -> int:
        return max(self.a.interval_weeks, self.b.interval_weeks)


class AllocationCase(str, Enum):
    """Which row of the weekly decision table produced a plan."""
    SECONDS_CAPPED = "seconds_capped"
    NONE_UNPROTECTED = "none_unprotected"
    DEMAND_CAPPED = "demand_capped"
    UNCAPPED = "uncapped"


@dataclass(frozen=True)
class AdministrationPlan:
    """
    One week's administration decision.

    All counts are doses. First/second are per two-dose product; ``single`` is
    the single-dose product.
    """
    first_a: float = 0.0
    second_a: float = 0.0
    first_b: float = 0.0
    second_b: float = 0.0
    single: float = 0.0
    case: AllocationCase = AllocationCase.UNCAPPED
    corrected: bool = False

    @property
    def two_dose_total(self) -> float:
        return self.first_a + self.second_a + self.first_b + self.second_b

    @property
    def total(self) -> float:
        return self.two_dose_total + self.single

    @property
    def seconds(self) -> float:
        return self.second_a + self.second_b

    @property
    def new_protections(self) -> float:
        """People who move out of the unprotected segment this week."""
        return self.first_a + self.first_b + self.single

    def with_changes(self, **changes) -> "AdministrationPlan":
        return replace(self, **changes)


@dataclass(frozen=True)
class PopulationState:
    """Population segments at a week boundary."""
    unprotected: float
    partially_protected: float
    fully_protected: float

    @property
    def total(self) -> float:
        return self.unprotected + self.partially_protected + self.fully_protected
