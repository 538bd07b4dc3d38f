"""Delivery schedules built from published tranche totals"""

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .errors import ConfigurationError


@dataclass(frozen=True)
class Tranche:
    """
    A supply commitment: ``total_doses`` of ``product`` delivered evenly
    over weeks ``first_week``..``last_week`` (inclusive).
    """
    product: str
    first_week: int
    last_week: int
    total_doses: float


def build_delivery_schedule(
    tranches: Iterable[Tranche],
    products: Sequence[str],
    horizon_weeks: int
) -> pd.DataFrame:
    """
    Spread tranche totals into a weekly delivery table.

    Tranches for the same product add up. Weeks past the horizon are dropped.

    Args:
        tranches: Supply commitments
        products: Column order of the result (every product gets a column)
        horizon_weeks: Number of simulated weeks

    Returns:
        DataFrame indexed by week 1..horizon_weeks, one column per product
    """
    weeks = pd.Index(np.arange(1, horizon_weeks + 1), name="week")
    out = pd.DataFrame(0.0, index=weeks, columns=list(products))

    for t in tranches:
        if t.product not in out.columns:
            raise ConfigurationError(f"Tranche names unknown product {t.product!r}")
        if t.total_doses < 0:
            raise ConfigurationError(f"Tranche total for {t.product!r} must be >= 0 (got {t.total_doses})")
        if t.first_week < 1 or t.last_week < t.first_week:
            raise ConfigurationError(
                f"Tranche for {t.product!r} has invalid week span {t.first_week}..{t.last_week}"
            )

        span = t.last_week - t.first_week + 1
        per_week = t.total_doses / span
        last = min(t.last_week, horizon_weeks)
        if t.first_week <= last:
            out.loc[t.first_week:last, t.product] += per_week

    return out
